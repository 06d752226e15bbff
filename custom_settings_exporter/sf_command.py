"""Thin wrapper around the Salesforce CLI (``sf``)."""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from . import config
from .errors import QueryError, ToolInvocationError

logger = logging.getLogger(__name__)


def _target_org_args() -> List[str]:
    return ['--target-org', config.SF_TARGET_ORG] if config.SF_TARGET_ORG else []


def _clip(text: str) -> str:
    if len(text) > config.MAX_OUTPUT_BYTES:
        return text[:config.MAX_OUTPUT_BYTES] + "\n... (output truncated)"
    return text


def run_sf_command(args: List[str]) -> str:
    """
    Run ``sf <args>`` and return its stdout.

    Arguments are handed to the process as a vector, so values containing
    spaces or quotes (SOQL statements) need no escaping.
    """
    command = [config.SF_CLI_PATH, *args]
    logger.debug("Executing sf command: %s", command)
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except FileNotFoundError:
        raise ToolInvocationError(f"{config.SF_CLI_PATH}: command not found", args=command)
    except OSError as e:
        raise ToolInvocationError(str(e), args=command)

    if result.returncode != 0:
        output = [text.strip() for text in (result.stderr, result.stdout) if text and text.strip()]
        error_msg = _clip("\n".join(output) or f"exit status {result.returncode}")
        logger.error("Command failed (exit %s): %s", result.returncode, error_msg)
        logger.error("Command was: %s", command)
        raise ToolInvocationError(error_msg, args=command, returncode=result.returncode,
                                  stdout=_clip(result.stdout or ""), stderr=_clip(result.stderr or ""))
    return result.stdout


def parse_envelope(raw: str) -> Dict[str, Any]:
    """Decode the ``--json`` envelope printed by the CLI."""
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError):
        raise QueryError(f"Unexpected output from Salesforce CLI: {raw.strip()[:500]}")
    if not isinstance(envelope, dict):
        raise QueryError("Unexpected output from Salesforce CLI")
    return envelope


def query(soql: str, use_tooling_api: bool = False) -> List[Dict[str, Any]]:
    """Run a SOQL query through ``sf data query --json`` and return the records."""
    args = ['data', 'query']
    if use_tooling_api:
        args.append('--use-tooling-api')
    args += ['--query', soql, '--json', *_target_org_args()]

    try:
        raw = run_sf_command(args)
    except ToolInvocationError as e:
        # With --json the CLI still prints its envelope on stdout when it fails.
        try:
            envelope = json.loads(e.stdout)
        except ValueError:
            raise e
        if isinstance(envelope, dict) and envelope.get('message'):
            raise QueryError(envelope['message'])
        raise

    envelope = parse_envelope(raw)
    if envelope.get('status', 0) != 0:
        raise QueryError(envelope.get('message') or 'Query failed')

    result = envelope.get('result') or {}
    records = result.get('records') if isinstance(result, dict) else None
    if not isinstance(records, list):
        return []
    return records


def export_tree(soql: str, output_dir: str, plan: bool = True) -> str:
    """Run ``sf data export tree`` writing data files (and a plan) to output_dir."""
    args = ['data', 'export', 'tree', '--query', soql, '--output-dir', str(output_dir)]
    if plan:
        args.append('--plan')
    args += _target_org_args()
    return run_sf_command(args)


def quote_soql_literal(value: str) -> str:
    """Return value as a single-quoted SOQL string literal."""
    escaped = str(value).replace('\\', '\\\\').replace("'", "\\'")
    return f"'{escaped}'"
