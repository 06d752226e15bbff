"""
Selection state behind the two-pane Custom Settings picker.

The window only renders what this object says and forwards clicks to it,
so every rule about what is checked lives here and can be tested without Tk.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from .exporter import stable_record_key
from .protocol import FetchRecords, RetrieveSelectedRecords, SaveSettings, SelectedRecords


class Phase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    POPULATED = "populated"
    CLOSED = "closed"


class BranchState(Enum):
    CHECKED = "checked"
    UNCHECKED = "unchecked"
    PARTIAL = "partial"


def _plural(count: int, noun: str) -> str:
    return f"1 {noun} selected" if count == 1 else f"{count} {noun}s selected"


class SelectorState:
    """In-memory snapshot for one picker session."""

    def __init__(self, candidate_types: Iterable[str], saved_types: Iterable[str] = (),
                 saved_record_keys: Optional[Dict[str, List[str]]] = None):
        self.candidate_types: Set[str] = set(candidate_types)
        self.saved_types: Set[str] = set(saved_types) & self.candidate_types
        self.checked_types: Set[str] = set(self.saved_types)
        self.saved_record_keys: Dict[str, Set[str]] = {
            t: set(keys) for t, keys in (saved_record_keys or {}).items()
        }
        self.loaded_records: Dict[str, List[dict]] = {}
        self.checked_record_keys: Dict[str, Set[str]] = {}
        self.filter_text = ""
        self.phase = Phase.IDLE

    # --- Pane 1: types ---

    @property
    def types_frozen(self) -> bool:
        return self.phase in (Phase.LOADING, Phase.CLOSED)

    def sorted_candidates(self) -> List[str]:
        return sorted(self.candidate_types)

    def visible_types(self) -> List[str]:
        term = self.filter_text.lower()
        return [t for t in self.sorted_candidates() if term in t.lower()]

    def set_filter(self, text: str) -> None:
        """Narrow pane 1; checked state of hidden types is untouched."""
        self.filter_text = (text or "").strip()

    def is_type_checked(self, type_name: str) -> bool:
        return type_name in self.checked_types

    def set_type_checked(self, type_name: str, checked: bool) -> bool:
        if self.types_frozen or type_name not in self.candidate_types:
            return False
        if checked:
            self.checked_types.add(type_name)
        else:
            self.checked_types.discard(type_name)
        return True

    def toggle_type(self, type_name: str) -> bool:
        return self.set_type_checked(type_name, not self.is_type_checked(type_name))

    def select_all_visible(self) -> None:
        if self.types_frozen:
            return
        self.checked_types.update(self.visible_types())

    def deselect_all(self) -> None:
        if self.types_frozen:
            return
        self.checked_types.clear()

    @property
    def checked_type_count(self) -> int:
        return len(self.checked_types)

    def types_selection_label(self) -> str:
        return _plural(self.checked_type_count, "type")

    # --- Retrieve / host reply ---

    def request_records(self) -> Optional[FetchRecords]:
        """Freeze the type list and build the fetch request for the host."""
        if self.types_frozen or not self.checked_types:
            return None
        self.phase = Phase.LOADING
        self.loaded_records = {}
        self.checked_record_keys = {}
        return FetchRecords(sorted(self.checked_types))

    def display_records(self, records_by_type: Dict[str, List[dict]]) -> None:
        """Host answered: build the record tree and pre-check saved keys."""
        if self.phase == Phase.CLOSED:
            return
        self.loaded_records = {t: list(recs or []) for t, recs in (records_by_type or {}).items()}
        self.checked_record_keys = {}
        for type_name, records in self.loaded_records.items():
            keys = {stable_record_key(r) for r in records}
            preselected = self.saved_record_keys.get(type_name, set()) & keys
            self.checked_record_keys[type_name] = set(preselected)
        self.phase = Phase.POPULATED

    def fetch_failed(self) -> None:
        """The host could not load records: unfreeze the type pane."""
        if self.phase == Phase.LOADING:
            self.phase = Phase.IDLE

    # --- Pane 2: record tree ---

    def branch_types(self) -> List[str]:
        return sorted(self.loaded_records)

    def record_keys(self, type_name: str) -> List[str]:
        """Keys of a branch in the order the org returned them, duplicates folded."""
        keys: List[str] = []
        for rec in self.loaded_records.get(type_name, []):
            key = stable_record_key(rec)
            if key not in keys:
                keys.append(key)
        return keys

    def is_record_checked(self, type_name: str, key: str) -> bool:
        return key in self.checked_record_keys.get(type_name, set())

    def set_record_checked(self, type_name: str, key: str, checked: bool) -> None:
        if self.phase != Phase.POPULATED or key not in self.record_keys(type_name):
            return
        keys = self.checked_record_keys.setdefault(type_name, set())
        if checked:
            keys.add(key)
        else:
            keys.discard(key)

    def toggle_record(self, type_name: str, key: str) -> None:
        self.set_record_checked(type_name, key, not self.is_record_checked(type_name, key))

    def toggle_branch(self, type_name: str, checked: bool) -> None:
        """Type-level checkbox: cascade to every record of the branch."""
        if self.phase != Phase.POPULATED or type_name not in self.loaded_records:
            return
        self.checked_record_keys[type_name] = set(self.record_keys(type_name)) if checked else set()

    def branch_state(self, type_name: str) -> BranchState:
        keys = self.record_keys(type_name)
        checked = self.checked_record_keys.get(type_name, set())
        if keys and checked >= set(keys):
            return BranchState.CHECKED
        if checked:
            return BranchState.PARTIAL
        return BranchState.UNCHECKED

    def selected_records(self) -> List[SelectedRecords]:
        """Checked records per type, both levels sorted."""
        return [
            SelectedRecords(type_name, sorted(self.checked_record_keys[type_name]))
            for type_name in sorted(self.checked_record_keys)
            if self.checked_record_keys[type_name]
        ]

    @property
    def checked_record_count(self) -> int:
        return sum(len(keys) for keys in self.checked_record_keys.values())

    def records_selection_label(self) -> str:
        return _plural(self.checked_record_count, "record")

    # --- Exits ---

    def can_save_and_retrieve(self) -> bool:
        return self.phase == Phase.POPULATED and self.checked_record_count > 0

    def can_save_types(self) -> bool:
        return self.phase in (Phase.IDLE, Phase.POPULATED) and self.checked_type_count > 0

    def save_and_retrieve(self) -> Optional[RetrieveSelectedRecords]:
        if not self.can_save_and_retrieve():
            return None
        return RetrieveSelectedRecords(self.selected_records())

    def save_types_only(self) -> Optional[SaveSettings]:
        if not self.can_save_types():
            return None
        return SaveSettings(sorted(self.checked_types))

    def close(self) -> None:
        """End the session; nothing held here is written anywhere."""
        self.phase = Phase.CLOSED
        self.loaded_records = {}
        self.checked_record_keys = {}
        self.checked_types = set()
