"""Configuration constants, logging setup and project root lookup."""

import os
import logging
from pathlib import Path
from typing import Optional, Union

from .errors import NoWorkspaceError

# ===========================================
# CONFIGURATION / GLOBAL CONSTANTS
# ===========================================

SF_CLI_PATH = os.getenv('SF_CLI_PATH', 'sf')
SF_TARGET_ORG = os.getenv('SF_TARGET_ORG') or None
MAX_OUTPUT_BYTES = 10 * 1024 * 1024
LOG_LEVEL = os.getenv('CUSTOM_SETTINGS_LOG_LEVEL', 'INFO')

PROJECT_MARKER = 'sfdx-project.json'
SETTINGS_FILE_PARTS = ('force-app', 'main', 'default', '.custom-settings', 'custom-settings.yaml')
DATA_DIR_PARTS = ('force-app', 'main', 'default', 'custom-settings')

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Install a root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    level_name = (level or LOG_LEVEL).upper()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)
    else:
        root.setLevel(level_name)


def resolve_project_root(explicit: Optional[Union[str, Path]] = None,
                         start: Optional[Union[str, Path]] = None) -> Path:
    """
    Return the Salesforce DX project root.

    An explicit path is trusted as long as it is a directory. Otherwise the
    directory tree is walked upwards from ``start`` (cwd by default) until a
    folder containing ``sfdx-project.json`` is found.
    """
    if explicit:
        root = Path(explicit).expanduser().resolve()
        if not root.is_dir():
            raise NoWorkspaceError(f"Project root does not exist: {root}")
        return root

    current = Path(start or os.getcwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_MARKER).is_file():
            return candidate
    raise NoWorkspaceError()
