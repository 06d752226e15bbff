"""Narrow a Custom Setting's field list down to what is worth exporting."""

import logging
from typing import Iterable, List

from .errors import NoCustomFieldsError, NoFieldsError

logger = logging.getLogger(__name__)

CUSTOM_FIELD_SUFFIX = '__c'
NAME_FIELD = 'Name'

# Standard columns present on every Custom Setting. Only used for logging;
# selection itself is governed by the suffix allowlist below.
SYSTEM_FIELDS = (
    'Id', 'IsDeleted', 'CurrencyIsoCode', 'SetupOwnerId',
    'CreatedDate', 'CreatedById', 'LastModifiedDate', 'LastModifiedById',
    'SystemModstamp', 'UserRecordAccessId', 'RecordVisibilityId',
)


def is_exportable_field(field_name: str) -> bool:
    return field_name.endswith(CUSTOM_FIELD_SUFFIX) or field_name == NAME_FIELD


def filter_fields(all_fields: Iterable[str], type_name: str = "") -> List[str]:
    """Keep custom fields and Name, in their original order."""
    all_fields = list(all_fields)
    if not all_fields:
        raise NoFieldsError(type_name)

    fields = [f for f in all_fields if is_exportable_field(f)]
    dropped = [f for f in all_fields if f not in fields]
    if dropped:
        system = [f for f in dropped if f in SYSTEM_FIELDS]
        logger.debug("%s: skipping %d field(s) (%d system): %s",
                     type_name or "?", len(dropped), len(system), ", ".join(dropped))

    if not fields:
        raise NoCustomFieldsError(type_name)
    return fields
