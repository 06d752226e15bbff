"""Read and write the project's custom-settings.yaml selection file."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import yaml

from . import config
from .errors import ConfigFormatError, ConfigNotFoundError

logger = logging.getLogger(__name__)

TYPES_KEY = 'CustomSettingsDataKeys'
RECORD_KEYS_KEY = 'CustomSettingsRecordNames'

PathLike = Union[str, Path]


@dataclass
class Selection:
    """Selected Custom Setting types plus optional per-type record keys."""
    types: List[str] = field(default_factory=list)
    record_keys_by_type: Dict[str, List[str]] = field(default_factory=dict)

    def normalized(self) -> "Selection":
        """Copy with duplicate types removed and orphaned/empty record lists dropped."""
        types: List[str] = []
        for name in self.types:
            if name not in types:
                types.append(name)
        record_keys = {
            name: list(keys)
            for name, keys in self.record_keys_by_type.items()
            if name in types and keys
        }
        return Selection(types, record_keys)

    def record_keys_for(self, type_name: str) -> List[str]:
        return list(self.record_keys_by_type.get(type_name, []))


# ===========================================
# PATHS
# ===========================================

def settings_file_path(root: PathLike) -> Path:
    return Path(root).joinpath(*config.SETTINGS_FILE_PARTS)


def custom_setting_dir(root: PathLike, type_name: str, create: bool = True) -> Path:
    """Data folder for one Custom Setting, created on demand."""
    path = Path(root).joinpath(*config.DATA_DIR_PARTS, type_name)
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


# ===========================================
# READ / WRITE
# ===========================================

def _parse(content: dict) -> Optional[Selection]:
    if not isinstance(content, dict):
        return None
    types = content.get(TYPES_KEY)
    if not isinstance(types, list):
        return None

    record_keys: Dict[str, List[str]] = {}
    raw_keys = content.get(RECORD_KEYS_KEY) or {}
    if isinstance(raw_keys, dict):
        for name, keys in raw_keys.items():
            if isinstance(keys, list):
                record_keys[str(name)] = [str(k) for k in keys if k is not None]

    return Selection([str(t) for t in types if t is not None], record_keys).normalized()


def read_selection(path: PathLike) -> Selection:
    """Return the saved selection; a missing or unreadable file is an empty one."""
    path = Path(path)
    if not path.exists():
        return Selection()
    try:
        content = yaml.safe_load(path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error reading YAML file %s: %s", path, e)
        return Selection()
    return _parse(content) or Selection()


def load_selection_strict(path: PathLike) -> Selection:
    """Like read_selection, but a missing or malformed file is an error."""
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(path)
    try:
        content = yaml.safe_load(path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error reading YAML file %s: %s", path, e)
        raise ConfigFormatError(path)
    selection = _parse(content)
    if selection is None:
        raise ConfigFormatError(path)
    return selection


def write_selection(path: PathLike, selection: Selection) -> None:
    """Replace the file with selection; record keys are omitted when empty."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    selection = selection.normalized()
    content: dict = {TYPES_KEY: list(selection.types)}
    if selection.record_keys_by_type:
        content[RECORD_KEYS_KEY] = {
            name: list(selection.record_keys_by_type[name])
            for name in selection.types
            if name in selection.record_keys_by_type
        }

    path.write_text(yaml.safe_dump(content, sort_keys=False, default_flow_style=False), encoding='utf-8')
    logger.debug("Wrote %d type(s) to %s", len(selection.types), path)


# ===========================================
# UPDATES
# ===========================================

def replace_types(path: PathLike, new_types: Iterable[str],
                  record_keys_by_type: Optional[Dict[str, List[str]]] = None) -> Tuple[List[str], List[str]]:
    """
    Replace the stored type list and return ``(added, removed)``.

    Record keys of removed types are pruned. Surviving types keep their
    saved keys unless ``record_keys_by_type`` supplies a new list for them.
    """
    previous = read_selection(path)
    new_types = list(dict.fromkeys(new_types))

    added = [t for t in new_types if t not in previous.types]
    removed = [t for t in previous.types if t not in new_types]

    record_keys = {t: keys for t, keys in previous.record_keys_by_type.items() if t in new_types}
    if record_keys_by_type:
        for type_name, keys in record_keys_by_type.items():
            record_keys[type_name] = list(keys)

    write_selection(path, Selection(new_types, record_keys))
    return added, removed


def add_types(path: PathLike, candidates: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Append candidates that are not stored yet; returns ``(added, already_present)``."""
    selection = read_selection(path)
    added: List[str] = []
    existing: List[str] = []

    for name in candidates:
        if name in selection.types:
            if name not in existing:
                existing.append(name)
        else:
            selection.types.append(name)
            added.append(name)

    if added:
        write_selection(path, selection)
    return added, existing
