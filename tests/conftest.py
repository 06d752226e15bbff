import json
import subprocess

import pytest

from custom_settings_exporter import sf_command
from custom_settings_exporter.errors import QueryError, ToolInvocationError


@pytest.fixture
def project_root(tmp_path):
    (tmp_path / "sfdx-project.json").write_text("{}")
    return tmp_path


class FakeSf:
    """Stands in for the sf CLI: answers queries from a table and records exports."""

    def __init__(self):
        self.records = {}        # FROM-object -> list of records
        self.fields = {}         # type -> list of field names
        self.failing_fields = set()
        self.failing_exports = set()
        self.exports = []        # (soql, output_dir)

    def query(self, soql, use_tooling_api=False):
        if use_tooling_api:
            type_name = soql.rsplit("=", 1)[1].strip().strip("'")
            if type_name in self.failing_fields:
                raise QueryError(f"sObject type '{type_name}' is not supported.")
            return [{"QualifiedApiName": f} for f in self.fields.get(type_name, [])]
        obj = soql.split(" FROM ", 1)[1].split()[0]
        return list(self.records.get(obj, []))

    def export_tree(self, soql, output_dir, plan=True):
        obj = soql.split(" FROM ", 1)[1].split()[0]
        if obj in self.failing_exports:
            raise ToolInvocationError("Export failed", returncode=1)
        self.exports.append((soql, output_dir))
        return ""


@pytest.fixture
def fake_sf(monkeypatch):
    fake = FakeSf()
    monkeypatch.setattr(sf_command, "query", fake.query)
    monkeypatch.setattr(sf_command, "export_tree", fake.export_tree)
    return fake


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def envelope(records=None, status=0, message=None):
    body = {"status": status}
    if message:
        body["message"] = message
    if records is not None:
        body["result"] = {"records": records, "totalSize": len(records)}
    return json.dumps(body)
