"""Command line entry point: ``custom-settings {show,retrieve,add}``."""

import argparse
import logging
import sys
from typing import List, Optional

from . import config
from .commands import (
    ERROR, INFO, WARNING, Outcome, add_custom_settings,
    retrieve_custom_settings_data, show_custom_settings,
)
from .errors import NoWorkspaceError
from .exporter import CustomSettingExporter

logger = logging.getLogger(__name__)

LEVEL_PREFIX = {INFO: "✅", WARNING: "⚠️ ", ERROR: "❌"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custom-settings",
        description="Select Salesforce Custom Settings and export their data with the sf CLI.",
    )
    parser.add_argument("--project-root", help="Salesforce DX project folder (default: search upwards from cwd)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="fetch Custom Settings from the org and open the picker")

    retrieve = sub.add_parser("retrieve", help="export data for the types listed in custom-settings.yaml")
    retrieve.add_argument("--file", dest="yaml_path", help="selection file to use instead of the project default")

    add = sub.add_parser("add", help="add Custom Setting types to custom-settings.yaml")
    add.add_argument("types", nargs="+", metavar="TYPE")
    return parser


def report(outcome: Outcome) -> int:
    """Print the outcome; exit status 0 only for informational results."""
    stream = sys.stdout if outcome.level == INFO else sys.stderr
    print(f"{LEVEL_PREFIX.get(outcome.level, '')} {outcome.message}", file=stream)
    return 0 if outcome.level == INFO else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config.setup_logging("DEBUG" if args.verbose else None)

    try:
        root = config.resolve_project_root(args.project_root)
    except NoWorkspaceError as e:
        return report(Outcome(ERROR, e.message))

    exporter = CustomSettingExporter()
    if args.command == "show":
        # Imported lazily so retrieve/add work on machines without a display.
        from .gui import run_selector
        outcome = show_custom_settings(root, exporter, run_selector)
    elif args.command == "retrieve":
        outcome = retrieve_custom_settings_data(root, exporter, args.yaml_path)
    else:
        outcome = add_custom_settings(root, args.types)
    return report(outcome)


if __name__ == "__main__":
    sys.exit(main())
