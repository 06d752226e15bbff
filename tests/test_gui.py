import pytest

from custom_settings_exporter.commands import SelectorHost
from custom_settings_exporter.exporter import CustomSettingExporter
from custom_settings_exporter.protocol import DisplayRecords, FetchRecords, SaveSettings
from custom_settings_exporter.selection_store import Selection
from custom_settings_exporter.selector_state import Phase


def _build_gui(project_root, candidates, saved):
    pytest.importorskip("tkinter")
    pytest.importorskip("customtkinter")
    import tkinter as tk
    from custom_settings_exporter import gui

    host = SelectorHost(project_root, CustomSettingExporter())
    try:
        app = gui.CustomSettingsSelectorGUI(candidates, saved, host)
    except tk.TclError:
        pytest.skip("Tk not available in this environment")
    app.withdraw()
    return app, host


def test_types_pane_reflects_saved_selection(project_root):
    app, _ = _build_gui(project_root, ["B__c", "A__c"], Selection(["B__c"]))
    try:
        assert app.type_checkboxes["B__c"].get() == 1
        assert app.type_checkboxes["A__c"].get() == 0
        assert app.types_count_label.cget("text") == "1 type selected"
    finally:
        app.destroy()


def test_retrieve_posts_fetch_and_renders_tree(project_root):
    app, host = _build_gui(project_root, ["A__c", "B__c"], Selection(["A__c"]))
    try:
        app.retrieve_action()
        assert host.channel.next_for_host(block=False) == FetchRecords(["A__c"])
        assert app.selector.phase == Phase.LOADING

        app._handle_display_records(DisplayRecords({"A__c": [{"Id": "1", "Name": "One"}]}))
        assert app.selector.phase == Phase.POPULATED
        branches = app.records_tree.get_children("")
        assert len(branches) == 1
        assert app.records_tree.item(branches[0], "text") == "☐ A__c (1)"
    finally:
        app.destroy()


def test_save_types_only_posts_message(project_root):
    app, host = _build_gui(project_root, ["A__c", "B__c"], Selection(["B__c", "A__c"]))
    try:
        app.save_types_only_action()
        assert host.channel.next_for_host(block=False) == SaveSettings(["A__c", "B__c"])
        assert app.is_saving
    finally:
        app.destroy()


def test_failed_fetch_unlocks_types_pane(project_root, monkeypatch):
    app, host = _build_gui(project_root, ["A__c", "B__c"], Selection(["A__c"]))
    from custom_settings_exporter import gui
    monkeypatch.setattr(gui.messagebox, "showerror", lambda *args: None)
    try:
        app.retrieve_action()
        assert app.selector.phase == Phase.LOADING

        app._handle_host_error("Error processing custom settings: boom")

        assert app.selector.phase == Phase.IDLE
        assert app.retrieve_button.cget("state") == "normal"
        assert app.type_checkboxes["B__c"].cget("state") == "normal"
    finally:
        app.destroy()
