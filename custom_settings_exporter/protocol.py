"""Messages exchanged between the selector window and the host that serves it."""

import queue
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

FETCH_RECORDS = 'fetchRecords'
DISPLAY_RECORDS = 'displayRecords'
RETRIEVE_SELECTED_RECORDS = 'retrieveSelectedRecords'
SAVE_SETTINGS = 'saveSettings'
# host -> UI only: the host finished a save and the window should go away.
CLOSE_SESSION = 'closeSession'
HOST_ERROR = 'hostError'
STATUS = 'status'


@dataclass
class FetchRecords:
    types: List[str]
    command = FETCH_RECORDS

    def to_dict(self) -> dict:
        return {'command': self.command, 'types': list(self.types)}


@dataclass
class DisplayRecords:
    records: Dict[str, List[dict]]
    command = DISPLAY_RECORDS

    def to_dict(self) -> dict:
        return {'command': self.command, 'records': {t: list(r) for t, r in self.records.items()}}


@dataclass
class SelectedRecords:
    type: str
    record_ids: List[str]

    def to_dict(self) -> dict:
        return {'type': self.type, 'recordIds': list(self.record_ids)}


@dataclass
class RetrieveSelectedRecords:
    records: List[SelectedRecords]
    command = RETRIEVE_SELECTED_RECORDS

    def to_dict(self) -> dict:
        return {'command': self.command, 'records': [r.to_dict() for r in self.records]}


@dataclass
class SaveSettings:
    settings: List[str]
    command = SAVE_SETTINGS

    def to_dict(self) -> dict:
        return {'command': self.command, 'settings': list(self.settings)}


@dataclass
class CloseSession:
    level: str = 'info'
    message: str = ''
    command = CLOSE_SESSION

    def to_dict(self) -> dict:
        return {'command': self.command, 'level': self.level, 'message': self.message}


@dataclass
class HostError:
    """A save or retrieve failed before finishing; the session stays open."""
    message: str
    command = HOST_ERROR

    def to_dict(self) -> dict:
        return {'command': self.command, 'message': self.message}


@dataclass
class StatusLine:
    message: str
    verbose: bool = False
    command = STATUS

    def to_dict(self) -> dict:
        return {'command': self.command, 'message': self.message, 'verbose': self.verbose}


Message = Union[FetchRecords, DisplayRecords, RetrieveSelectedRecords, SaveSettings,
                CloseSession, HostError, StatusLine]


def from_dict(data: dict) -> Optional[Message]:
    """Decode a wire message; unknown or malformed commands return None."""
    if not isinstance(data, dict):
        return None
    command = data.get('command')
    if command == FETCH_RECORDS:
        return FetchRecords([str(t) for t in data.get('types') or []])
    if command == DISPLAY_RECORDS:
        records = data.get('records') or {}
        return DisplayRecords({str(t): list(r or []) for t, r in records.items()})
    if command == RETRIEVE_SELECTED_RECORDS:
        return RetrieveSelectedRecords([
            SelectedRecords(str(r.get('type')), [str(k) for k in r.get('recordIds') or []])
            for r in data.get('records') or []
            if isinstance(r, dict) and r.get('type')
        ])
    if command == SAVE_SETTINGS:
        return SaveSettings([str(s) for s in data.get('settings') or []])
    if command == CLOSE_SESSION:
        return CloseSession(data.get('level', 'info'), data.get('message', ''))
    if command == HOST_ERROR:
        return HostError(data.get('message', ''))
    if command == STATUS:
        return StatusLine(data.get('message', ''), bool(data.get('verbose', False)))
    return None


@dataclass
class MessageChannel:
    """
    Two one-way queues: UI -> host and host -> UI.

    Messages cross the thread boundary in their wire form (``to_dict``) and
    are decoded on the receiving side, so both ends only share plain data.
    ``None`` on the host queue tells the host to stop serving.
    """
    to_host: "queue.Queue[Optional[dict]]" = field(default_factory=queue.Queue)
    to_ui: "queue.Queue[dict]" = field(default_factory=queue.Queue)

    def post_to_host(self, message: Message) -> None:
        self.to_host.put(message.to_dict())

    def post_to_ui(self, message: Message) -> None:
        self.to_ui.put(message.to_dict())

    def close_host(self) -> None:
        self.to_host.put(None)

    def next_for_host(self, block: bool = True, timeout: Optional[float] = None) -> Union[Message, dict, None]:
        """
        Next message for the host. Returns None for the stop marker and the
        raw dict when it does not decode to a known command.
        """
        data = self.to_host.get(block=block, timeout=timeout)
        if data is None:
            return None
        return from_dict(data) or data

    def next_for_ui(self, block: bool = True, timeout: Optional[float] = None) -> Optional[Message]:
        return from_dict(self.to_ui.get(block=block, timeout=timeout))

    def drain_ui(self) -> List[Message]:
        """Everything currently waiting for the UI, in arrival order."""
        messages: List[Message] = []
        try:
            while True:
                message = from_dict(self.to_ui.get_nowait())
                if message is not None:
                    messages.append(message)
        except queue.Empty:
            pass
        return messages
