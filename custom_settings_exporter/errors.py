"""Exceptions raised while talking to the Salesforce CLI or the selection file."""

from typing import List, Optional


class CustomSettingsError(Exception):
    """Base class for every error this package raises on purpose."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ToolInvocationError(CustomSettingsError):
    """
    The sf CLI exited non-zero or could not be started.

    ``stdout`` and ``stderr`` are kept apart: with ``--json`` the CLI prints
    its error envelope on stdout while warnings go to stderr.
    """

    def __init__(self, message: str, args: Optional[List[str]] = None, returncode: Optional[int] = None,
                 stdout: str = "", stderr: str = ""):
        self.command_args = list(args or [])
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(message)


class QueryError(CustomSettingsError):
    """The CLI answered with a non-zero status envelope."""


class NoFieldsError(CustomSettingsError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"No fields found for Custom Setting: {type_name}")


class NoCustomFieldsError(CustomSettingsError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"No custom fields found for Custom Setting: {type_name}")


class NoMatchingRecordsError(CustomSettingsError):
    """None of the saved record keys matched a record in the org."""

    def __init__(self, type_name: str, keys: List[str]):
        self.type_name = type_name
        self.keys = list(keys)
        super().__init__(f"None of the {len(keys)} selected record(s) were found for {type_name}")


class ConfigNotFoundError(CustomSettingsError):
    def __init__(self, path):
        self.path = path
        super().__init__("custom-settings.yaml file not found.")


class ConfigFormatError(CustomSettingsError):
    def __init__(self, path):
        self.path = path
        super().__init__("Invalid custom-settings.yaml format. Expected CustomSettingsDataKeys array.")


class NoWorkspaceError(CustomSettingsError):
    def __init__(self, message: str = "No workspace folder is open."):
        super().__init__(message)
