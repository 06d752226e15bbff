from custom_settings_exporter.protocol import (
    CloseSession, DisplayRecords, FetchRecords, MessageChannel,
    RetrieveSelectedRecords, SaveSettings, SelectedRecords, StatusLine, from_dict,
)


def test_wire_names_match_the_picker_protocol():
    assert FetchRecords(["A"]).to_dict() == {"command": "fetchRecords", "types": ["A"]}
    assert DisplayRecords({"A": [{"Id": "1"}]}).to_dict() == {
        "command": "displayRecords", "records": {"A": [{"Id": "1"}]},
    }
    assert SaveSettings(["A", "B"]).to_dict() == {"command": "saveSettings", "settings": ["A", "B"]}


def test_decode_retrieve_selected_records():
    message = from_dict({
        "command": "retrieveSelectedRecords",
        "records": [{"type": "A", "recordIds": ["x", "y"]}, {"recordIds": ["orphan"]}],
    })
    assert message == RetrieveSelectedRecords([SelectedRecords("A", ["x", "y"])])


def test_decode_unknown_or_garbage():
    assert from_dict({"command": "launchRockets"}) is None
    assert from_dict("fetchRecords") is None
    assert from_dict({"command": "fetchRecords"}) == FetchRecords([])


def test_channel_drain_keeps_order():
    channel = MessageChannel()
    channel.post_to_ui(StatusLine("one"))
    channel.post_to_ui(CloseSession("info", "done"))
    assert channel.drain_ui() == [StatusLine("one"), CloseSession("info", "done")]
    assert channel.drain_ui() == []


def test_channel_carries_wire_form():
    channel = MessageChannel()
    request = RetrieveSelectedRecords([SelectedRecords("A__c", ["k1"])])
    channel.post_to_host(request)
    assert channel.to_host.get_nowait() == {
        "command": "retrieveSelectedRecords",
        "records": [{"type": "A__c", "recordIds": ["k1"]}],
    }

    channel.post_to_host(request)
    assert channel.next_for_host(block=False) == request


def test_channel_host_side_stop_and_unknown_commands():
    channel = MessageChannel()
    channel.to_host.put({"command": "launchRockets"})
    channel.close_host()
    assert channel.next_for_host(block=False) == {"command": "launchRockets"}
    assert channel.next_for_host(block=False) is None
