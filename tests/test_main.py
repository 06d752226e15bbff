import pytest

from custom_settings_exporter import config
from custom_settings_exporter.errors import NoWorkspaceError
from custom_settings_exporter.main import main
from custom_settings_exporter.selection_store import Selection, settings_file_path, write_selection


def test_resolve_project_root_walks_up(project_root):
    nested = project_root / "force-app" / "main"
    nested.mkdir(parents=True)
    assert config.resolve_project_root(start=nested) == project_root.resolve()


def test_resolve_project_root_without_marker(tmp_path):
    with pytest.raises(NoWorkspaceError, match="No workspace folder is open."):
        config.resolve_project_root(start=tmp_path)


def test_explicit_root_must_exist(tmp_path):
    with pytest.raises(NoWorkspaceError):
        config.resolve_project_root(tmp_path / "missing")


def test_retrieve_without_selection_file_fails(project_root, capsys):
    assert main(["--project-root", str(project_root), "retrieve"]) == 1
    assert "custom-settings.yaml file not found." in capsys.readouterr().err


def test_retrieve_with_empty_selection_is_ok(project_root, capsys):
    write_selection(settings_file_path(project_root), Selection([]))
    assert main(["--project-root", str(project_root), "retrieve"]) == 0
    assert "No Custom Settings found in custom-settings.yaml." in capsys.readouterr().out


def test_retrieve_all_success(fake_sf, project_root, capsys):
    fake_sf.fields = {"A__c": ["Name"]}
    write_selection(settings_file_path(project_root), Selection(["A__c"]))
    assert main(["--project-root", str(project_root), "retrieve"]) == 0
    assert "Successfully retrieved data for 1 Custom Setting(s)." in capsys.readouterr().out


def test_add_command(project_root, capsys):
    assert main(["--project-root", str(project_root), "add", "A__c"]) == 0
    assert "has been added" in capsys.readouterr().out


def test_no_workspace(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["retrieve"]) == 1
    assert "No workspace folder is open." in capsys.readouterr().err
