"""Fetch Custom Setting metadata/records and export their data with the sf CLI."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import sf_command
from .errors import NoMatchingRecordsError, QueryError
from .fields import filter_fields
from .selection_store import custom_setting_dir

logger = logging.getLogger(__name__)

CUSTOM_SETTINGS_QUERY = (
    "SELECT QualifiedApiName, DeveloperName, Label "
    "FROM EntityDefinition WHERE IsCustomSetting = true"
)

StatusCallback = Callable[..., None]


# ===========================================
# HELPER CLASSES
# ===========================================

@dataclass
class BatchResult:
    """Outcome of exporting a list of Custom Settings one after another."""
    success_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.error_count


def _non_blank(value) -> bool:
    return isinstance(value, str) and value.strip() != ""


def stable_record_key(record: Dict) -> str:
    """
    Key used to remember a selected record across orgs.

    List settings usually carry a Name; hierarchy settings often only have
    a SetupOwnerId. Record Ids differ between orgs and are the last resort.
    """
    if not record:
        return "(unknown)"
    if _non_blank(record.get('Name')):
        return record['Name']
    if _non_blank(record.get('SetupOwnerId')):
        return record['SetupOwnerId']
    return record.get('Id') or "(unknown)"


def resolve_record_ids(records: Iterable[Dict], keys: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Map record keys back to Ids; returns ``(ids, unmatched_keys)``."""
    ids_by_key: Dict[str, List[str]] = {}
    for rec in records:
        rec_id = rec.get('Id')
        if rec_id:
            ids_by_key.setdefault(stable_record_key(rec), []).append(rec_id)

    ids: List[str] = []
    unmatched: List[str] = []
    for key in keys:
        matched = ids_by_key.get(key)
        if matched:
            ids.extend(i for i in matched if i not in ids)
        else:
            unmatched.append(key)
    return ids, unmatched


def id_in_clause(record_ids: Iterable[str]) -> str:
    return "Id IN ({})".format(", ".join(sf_command.quote_soql_literal(i) for i in record_ids))


def build_export_query(type_name: str, fields: List[str], where_clause: Optional[str] = None) -> str:
    query = f"SELECT {', '.join(fields)} FROM {type_name}"
    if where_clause:
        query += f" WHERE {where_clause}"
    return query


# ===========================================
# MAIN EXPORT CLASS
# ===========================================

class CustomSettingExporter:
    """Talks to the org through the sf CLI on behalf of both commands."""

    def __init__(self, status_callback: Optional[StatusCallback] = None):
        self.status_callback = status_callback

    def _log_status(self, message: str, verbose: bool = True):
        """Send a progress line to the GUI (if any) and to the log."""
        logger.info(message)
        if self.status_callback:
            self.status_callback(message, verbose=verbose)

    # --- Discovery ---

    def fetch_custom_settings(self) -> List[str]:
        """API names of every Custom Setting type in the org, sorted."""
        self._log_status("Fetching Custom Settings from the org...")
        records = sf_command.query(CUSTOM_SETTINGS_QUERY)
        names = sorted({r['QualifiedApiName'] for r in records if r.get('QualifiedApiName')})
        self._log_status(f"✅ Found {len(names)} Custom Setting(s).")
        return names

    def fetch_records_for_type(self, type_name: str) -> List[Dict]:
        """Records of one type; any failure yields an empty list."""
        try:
            records = sf_command.query(f"SELECT Id, Name, SetupOwnerId FROM {type_name}")
        except Exception as e:
            logger.error("Error fetching records for %s: %s", type_name, e)
            return []
        return [{k: v for k, v in rec.items() if k != 'attributes'} for rec in records]

    def fetch_records(self, type_names: Iterable[str]) -> Dict[str, List[Dict]]:
        records_by_type: Dict[str, List[Dict]] = {}
        for type_name in type_names:
            records_by_type[type_name] = self.fetch_records_for_type(type_name)
            self._log_status(f"  {type_name}: {len(records_by_type[type_name])} record(s)")
        return records_by_type

    def fetch_fields_for_setting(self, type_name: str) -> List[str]:
        """Exportable fields of a type, read through the Tooling API."""
        field_query = (
            "SELECT QualifiedApiName FROM FieldDefinition "
            f"WHERE EntityDefinition.QualifiedApiName = {sf_command.quote_soql_literal(type_name)}"
        )
        try:
            records = sf_command.query(field_query, use_tooling_api=True)
        except QueryError as e:
            raise QueryError(f"Failed to fetch fields for {type_name}: {e.message or 'Unknown error'}")

        all_fields = [r['QualifiedApiName'] for r in records if r.get('QualifiedApiName')]
        return filter_fields(all_fields, type_name)

    # --- Export ---

    def export_custom_setting_data(self, type_name: str, fields: List[str], output_dir,
                                   where_clause: Optional[str] = None) -> None:
        self._log_status(f"  Exporting data for {type_name} to {output_dir}")
        sf_command.export_tree(build_export_query(type_name, fields, where_clause), str(output_dir))

    def _where_for_keys(self, type_name: str, keys: List[str],
                        records: Optional[List[Dict]]) -> str:
        if records is None:
            records = self.fetch_records_for_type(type_name)
        ids, unmatched = resolve_record_ids(records, keys)
        if unmatched:
            logger.warning("%s: %d selected record(s) not found in org: %s",
                           type_name, len(unmatched), ", ".join(unmatched))
        if not ids:
            raise NoMatchingRecordsError(type_name, keys)
        return id_in_clause(ids)

    def export_types(self, root, type_names: List[str],
                     record_keys_by_type: Optional[Dict[str, List[str]]] = None,
                     records_by_type: Optional[Dict[str, List[Dict]]] = None) -> BatchResult:
        """
        Export every type in order. A failure for one type is recorded and the
        batch moves on to the next one.
        """
        record_keys_by_type = record_keys_by_type or {}
        records_by_type = records_by_type or {}
        result = BatchResult()

        self._log_status("=== Starting Custom Settings Export ===")
        self._log_status(f"Total Custom Settings to process: {len(type_names)}")

        for i, type_name in enumerate(type_names, 1):
            self._log_status(f"[{i}/{len(type_names)}] Processing: {type_name}")
            try:
                fields = self.fetch_fields_for_setting(type_name)
                self._log_status(f"  Fields: {', '.join(fields)}")

                where_clause = None
                keys = record_keys_by_type.get(type_name)
                if keys:
                    where_clause = self._where_for_keys(type_name, keys, records_by_type.get(type_name))

                output_dir = custom_setting_dir(Path(root), type_name)
                self.export_custom_setting_data(type_name, fields, output_dir, where_clause)
                result.success_count += 1
                self._log_status("  ✅ Done")
            except Exception as e:
                error_msg = getattr(e, 'message', None) or str(e)
                result.error_count += 1
                result.errors.append(f"{type_name}: {error_msg}")
                logger.error("Error retrieving data for %s: %s", type_name, error_msg)
                self._log_status(f"  ❌ ERROR: {error_msg}")

        self._log_status(f"=== Finished: {result.success_count} succeeded, {result.error_count} failed ===")
        return result
