"""The user-facing operations: pick Custom Settings and retrieve their data."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .errors import ConfigFormatError, ConfigNotFoundError, QueryError, ToolInvocationError
from .exporter import BatchResult, CustomSettingExporter
from .protocol import (
    CloseSession, DisplayRecords, FetchRecords, HostError, MessageChannel,
    RetrieveSelectedRecords, SaveSettings, StatusLine,
)
from .selection_store import (
    Selection, add_types, custom_setting_dir, load_selection_strict,
    read_selection, replace_types, settings_file_path,
)

logger = logging.getLogger(__name__)

INFO = 'info'
WARNING = 'warning'
ERROR = 'error'

CLI_NOT_FOUND_MSG = "Salesforce CLI (sf) is not installed or not in PATH. Please install the Salesforce CLI."
NOT_AUTHENTICATED_MSG = 'Not authenticated to a Salesforce org. Please run "sf org login" to authenticate.'
NO_ORG_SETTINGS_MSG = "No Custom Settings found in the authenticated Salesforce org."
NO_FILE_SETTINGS_MSG = "No Custom Settings found in custom-settings.yaml."
SESSION_CANCELLED_MSG = "Custom Settings selection closed without saving."


@dataclass
class Outcome:
    """What the user is told when a command finishes."""
    level: str
    message: str

    @property
    def ok(self) -> bool:
        return self.level == INFO


# ===========================================
# MESSAGES
# ===========================================

def describe_cli_error(error_message: str) -> str:
    """Turn raw CLI output from type discovery into something actionable."""
    if 'command not found' in error_message or 'not recognized' in error_message:
        return CLI_NOT_FOUND_MSG
    if 'No authorization found' in error_message or 'not authenticated' in error_message:
        return NOT_AUTHENTICATED_MSG
    return f"Error fetching Custom Settings: {error_message}"


def summarize_batch(result: BatchResult) -> Outcome:
    """Info, warning or error depending on how many types failed."""
    if result.errors:
        logger.error("Errors:\n%s", "\n".join(result.errors))

    if result.error_count == 0:
        return Outcome(INFO, f"Successfully retrieved data for {result.success_count} Custom Setting(s).")
    if result.success_count == 0:
        return Outcome(ERROR, f"Failed to retrieve data for all {result.error_count} Custom Setting(s). "
                              "Check the output for details.")
    return Outcome(WARNING, f"Retrieved data for {result.success_count} Custom Setting(s), "
                            f"but {result.error_count} failed. Check the output for details.")


def summarize_changes(added: List[str], removed: List[str]) -> Outcome:
    messages = []
    if added:
        messages.append(f"Added {len(added)} setting(s)")
    if removed:
        messages.append(f"Removed {len(removed)} setting(s)")
    if messages:
        return Outcome(INFO, ", ".join(messages) + " in custom-settings.yaml")
    return Outcome(INFO, "No changes made to custom-settings.yaml")


# ===========================================
# PICKER HOST
# ===========================================

class SelectorHost:
    """
    Serves one picker session: answers record fetches, persists the
    selection and runs the export. Runs on its own worker thread and talks
    to the window only through the channel.
    """

    def __init__(self, root, exporter: CustomSettingExporter, channel: Optional[MessageChannel] = None):
        self.root = Path(root)
        self.exporter = exporter
        self.channel = channel or MessageChannel()
        self.records_by_type: Dict[str, List[dict]] = {}
        self.outcome: Optional[Outcome] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def settings_path(self) -> Path:
        return settings_file_path(self.root)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self.channel.close_host()

    def join(self) -> None:
        """Wait for the worker; a save that already started runs to completion."""
        if self._thread is None or not self._thread.is_alive():
            return
        logger.info("Waiting for the picker host to finish...")
        self._thread.join()

    def _serve(self) -> None:
        while True:
            message = self.channel.next_for_host()
            if message is None:
                return
            if self.handle(message):
                return

    def handle(self, message) -> bool:
        """Process one UI message; True once the session is finished."""
        try:
            if isinstance(message, FetchRecords):
                self.handle_fetch_records(message.types)
            elif isinstance(message, SaveSettings):
                self.outcome = self.handle_save_settings(message.settings)
            elif isinstance(message, RetrieveSelectedRecords):
                self.outcome = self.handle_retrieve_selected(message)
            else:
                logger.warning("Ignoring unknown message: %r", message)
                return False
        except Exception as e:
            logger.exception("Error handling %s", getattr(message, 'command', message))
            self.channel.post_to_ui(HostError(f"Error processing custom settings: {e}"))
            return False

        if self.outcome is not None:
            self.channel.post_to_ui(CloseSession(self.outcome.level, self.outcome.message))
            return True
        return False

    def _status(self, message: str, verbose: bool = False) -> None:
        self.channel.post_to_ui(StatusLine(message, verbose))

    def handle_fetch_records(self, types: Iterable[str]) -> None:
        records = self.exporter.fetch_records(list(types))
        self.records_by_type.update(records)
        self.channel.post_to_ui(DisplayRecords(records))

    def handle_save_settings(self, settings: List[str]) -> Outcome:
        for type_name in settings:
            custom_setting_dir(self.root, type_name)
        added, removed = replace_types(self.settings_path, settings)
        return summarize_changes(added, removed)

    def handle_retrieve_selected(self, message: RetrieveSelectedRecords) -> Outcome:
        types = [r.type for r in message.records]
        record_keys = {r.type: list(r.record_ids) for r in message.records}
        replace_types(self.settings_path, types, record_keys)
        self._status(f"Saved {len(types)} type(s) to custom-settings.yaml")

        result = self.exporter.export_types(self.root, types, record_keys, self.records_by_type)
        return summarize_batch(result)


# ===========================================
# COMMANDS
# ===========================================

OpenUI = Callable[[List[str], Selection, SelectorHost], Optional[Outcome]]


def show_custom_settings(root, exporter: CustomSettingExporter, open_ui: OpenUI) -> Outcome:
    """Fetch the org's Custom Settings and let the user pick from them."""
    try:
        candidates = exporter.fetch_custom_settings()
    except (ToolInvocationError, QueryError) as e:
        return Outcome(ERROR, describe_cli_error(e.message))

    if not candidates:
        return Outcome(INFO, NO_ORG_SETTINGS_MSG)

    saved = read_selection(settings_file_path(root))
    host = SelectorHost(root, exporter)
    try:
        outcome = open_ui(candidates, saved, host)
    finally:
        host.stop()
        host.join()
    return outcome or host.outcome or Outcome(INFO, SESSION_CANCELLED_MSG)


def retrieve_custom_settings_data(root, exporter: CustomSettingExporter, yaml_path=None) -> Outcome:
    """Export every Custom Setting listed in the selection file."""
    path = Path(yaml_path) if yaml_path else settings_file_path(root)
    logger.info("Using selection file %s", path)
    try:
        selection = load_selection_strict(path)
    except (ConfigNotFoundError, ConfigFormatError) as e:
        return Outcome(ERROR, e.message)

    if not selection.types:
        return Outcome(INFO, NO_FILE_SETTINGS_MSG)

    result = exporter.export_types(root, selection.types, selection.record_keys_by_type)
    return summarize_batch(result)


def add_custom_settings(root, type_names: List[str]) -> Outcome:
    """Add types to the selection file without touching the ones already there."""
    for type_name in type_names:
        custom_setting_dir(root, type_name)
    added, existing = add_types(settings_file_path(root), type_names)

    if len(type_names) == 1:
        name = type_names[0]
        if added:
            return Outcome(INFO, f"Custom setting '{name}' has been added to custom-settings.yaml")
        return Outcome(INFO, f"Custom setting '{name}' is already in custom-settings.yaml")

    parts = []
    if added:
        parts.append(f"Added {len(added)} setting(s)")
    if existing:
        parts.append(f"{len(existing)} already present")
    return Outcome(INFO, ", ".join(parts) + " in custom-settings.yaml" if parts else "No changes made to custom-settings.yaml")
