import pytest

from custom_settings_exporter.errors import NoCustomFieldsError, QueryError
from custom_settings_exporter.exporter import (
    BatchResult, CustomSettingExporter, build_export_query, id_in_clause,
    resolve_record_ids, stable_record_key,
)
from custom_settings_exporter.selection_store import custom_setting_dir


# ===========================================
# Record keys
# ===========================================

def test_stable_key_prefers_name():
    assert stable_record_key({"Id": "001", "Name": "Acme"}) == "Acme"


def test_stable_key_falls_back_to_setup_owner():
    assert stable_record_key({"Id": "001", "SetupOwnerId": "00G"}) == "00G"
    assert stable_record_key({"Id": "001", "Name": "  ", "SetupOwnerId": "00G"}) == "00G"


def test_stable_key_last_resort_is_id():
    assert stable_record_key({"Id": "001"}) == "001"
    assert stable_record_key({"Id": "001", "Name": None, "SetupOwnerId": None}) == "001"
    assert stable_record_key({}) == "(unknown)"


def test_resolve_record_ids():
    records = [
        {"Id": "a1", "Name": "Alpha"},
        {"Id": "b1", "SetupOwnerId": "00D"},
        {"Id": "c1", "Name": "Gamma"},
    ]
    ids, unmatched = resolve_record_ids(records, ["Gamma", "00D", "Missing"])
    assert ids == ["c1", "b1"]
    assert unmatched == ["Missing"]


def test_query_building():
    assert build_export_query("Foo__c", ["Name", "Bar__c"]) == "SELECT Name, Bar__c FROM Foo__c"
    where = id_in_clause(["a1", "b2"])
    assert where == "Id IN ('a1', 'b2')"
    assert build_export_query("Foo__c", ["Name"], where) == "SELECT Name FROM Foo__c WHERE Id IN ('a1', 'b2')"


# ===========================================
# Org access
# ===========================================

def test_fetch_custom_settings_sorted(fake_sf):
    fake_sf.records["EntityDefinition"] = [
        {"QualifiedApiName": "Zed__c"}, {"QualifiedApiName": "Abc__c"},
    ]
    assert CustomSettingExporter().fetch_custom_settings() == ["Abc__c", "Zed__c"]


def test_fetch_records_failure_is_empty(monkeypatch):
    def boom(soql, use_tooling_api=False):
        raise QueryError("INVALID_TYPE")
    monkeypatch.setattr("custom_settings_exporter.sf_command.query", boom)
    assert CustomSettingExporter().fetch_records(["A__c", "B__c"]) == {"A__c": [], "B__c": []}


def test_fetch_records_strips_attributes(fake_sf):
    fake_sf.records["A__c"] = [{"attributes": {"type": "A__c"}, "Id": "1", "Name": "One"}]
    assert CustomSettingExporter().fetch_records_for_type("A__c") == [{"Id": "1", "Name": "One"}]


def test_fetch_fields_filters(fake_sf):
    fake_sf.fields["A__c"] = ["Id", "Name", "Value__c", "SetupOwnerId"]
    assert CustomSettingExporter().fetch_fields_for_setting("A__c") == ["Name", "Value__c"]


def test_fetch_fields_error_names_the_type(fake_sf):
    fake_sf.failing_fields.add("A__c")
    with pytest.raises(QueryError, match="Failed to fetch fields for A__c"):
        CustomSettingExporter().fetch_fields_for_setting("A__c")


def test_fetch_fields_only_system_fields(fake_sf):
    fake_sf.fields["A__c"] = ["Id", "SetupOwnerId"]
    with pytest.raises(NoCustomFieldsError):
        CustomSettingExporter().fetch_fields_for_setting("A__c")


# ===========================================
# Batch export
# ===========================================

def test_batch_partial_failure_keeps_going(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name", "A__c"], "C__c": ["Name"]}
    fake_sf.failing_fields.add("B__c")

    result = CustomSettingExporter().export_types(project_root, ["A__c", "B__c", "C__c"])

    assert (result.success_count, result.error_count) == (2, 1)
    assert result.errors[0].startswith("B__c: Failed to fetch fields for B__c")
    assert custom_setting_dir(project_root, "C__c", create=False).is_dir()
    assert not custom_setting_dir(project_root, "B__c", create=False).exists()
    assert [soql for soql, _ in fake_sf.exports] == [
        "SELECT Name, A__c FROM A__c",
        "SELECT Name FROM C__c",
    ]


def test_batch_export_failure_is_recorded(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name"]}
    fake_sf.failing_exports.add("A__c")
    result = CustomSettingExporter().export_types(project_root, ["A__c"])
    assert result == BatchResult(0, 1, ["A__c: Export failed"])


def test_batch_writes_into_type_folder(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name"]}
    CustomSettingExporter().export_types(project_root, ["A__c"])
    _, output_dir = fake_sf.exports[0]
    assert output_dir == str(project_root / "force-app/main/default/custom-settings/A__c")


def test_batch_with_record_keys_uses_loaded_records(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name", "Value__c"]}
    records = {"A__c": [{"Id": "a1", "Name": "One"}, {"Id": "a2", "Name": "Two"}]}

    result = CustomSettingExporter().export_types(project_root, ["A__c"], {"A__c": ["Two"]}, records)

    assert result.success_count == 1
    assert fake_sf.exports[0][0] == "SELECT Name, Value__c FROM A__c WHERE Id IN ('a2')"


def test_batch_with_record_keys_fetches_records_when_needed(fake_sf, project_root):
    fake_sf.fields = {"H__c": ["Value__c"]}
    fake_sf.records["H__c"] = [{"Id": "h1", "SetupOwnerId": "00D"}, {"Id": "h2", "SetupOwnerId": "005"}]

    CustomSettingExporter().export_types(project_root, ["H__c"], {"H__c": ["005"]})

    assert fake_sf.exports[0][0].endswith("WHERE Id IN ('h2')")


def test_batch_with_unknown_record_keys_fails_that_type(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name"], "B__c": ["Name"]}
    fake_sf.records["A__c"] = [{"Id": "a1", "Name": "One"}]

    result = CustomSettingExporter().export_types(project_root, ["A__c", "B__c"], {"A__c": ["Nope"]})

    assert (result.success_count, result.error_count) == (1, 1)
    assert result.errors == ["A__c: None of the 1 selected record(s) were found for A__c"]


def test_status_callback_receives_progress(fake_sf, project_root):
    fake_sf.fields = {"A__c": ["Name"]}
    lines = []
    CustomSettingExporter(status_callback=lambda m, verbose=False: lines.append(m)).export_types(project_root, ["A__c"])
    assert any("[1/1] Processing: A__c" in line for line in lines)
