import pytest

from webcfgbus.forcesync import (
    FIELD_SIZE,
    ForceSync,
    ForceSyncRequest,
    SyncInProgressError,
    parse_force_sync_json,
)

TRANS_ID = "e35c746c-bf15-43baXXXXXXXXXXXXXXXXXx____XXXXXXXXXXXXXX"
JSON_PAYLOAD = '{ "value":"root", "transaction_id":"%s"}' % TRANS_ID


@pytest.fixture
def triggers():
    return []


@pytest.fixture
def force_sync(triggers):
    return ForceSync(is_boot_sync=lambda: False, on_trigger=lambda: triggers.append(1))


def test_set_plain_value(force_sync, triggers):
    assert force_sync.set("root") is True
    assert triggers == [1]
    assert force_sync.get() == ForceSyncRequest("root", "")


def test_set_empty_value(force_sync, triggers):
    assert force_sync.set("") is False
    assert triggers == []
    assert force_sync.get() is None


def test_set_json_value(force_sync, triggers):
    assert force_sync.set(JSON_PAYLOAD) is True
    assert triggers == [1]
    assert force_sync.get() == ForceSyncRequest("root", TRANS_ID)


def test_sequence_from_source(force_sync):
    force_sync.set("root")
    force_sync.set("")
    assert force_sync.get() is None
    force_sync.set(JSON_PAYLOAD)
    request = force_sync.get()
    assert request.value == "root"
    assert request.transaction_id == TRANS_ID


def test_none_value_clears(force_sync):
    force_sync.set(JSON_PAYLOAD)
    assert force_sync.set(None) is False
    assert force_sync.get() is None
    # transaction id was cleared, so a new request is accepted
    assert force_sync.set(JSON_PAYLOAD) is True


def test_second_request_while_pending_is_refused(force_sync, triggers):
    force_sync.set(JSON_PAYLOAD)
    with pytest.raises(SyncInProgressError):
        force_sync.set('{"value":"wan","transaction_id":"abc"}')
    assert triggers == [1]
    assert force_sync.get().transaction_id == TRANS_ID


def test_boot_sync_refuses_request(triggers):
    fs = ForceSync(is_boot_sync=lambda: True, on_trigger=lambda: triggers.append(1))
    with pytest.raises(SyncInProgressError):
        fs.set("root")
    assert triggers == []


def test_clear_allows_new_request(force_sync):
    force_sync.set(JSON_PAYLOAD)
    force_sync.clear()
    assert force_sync.get() is None
    assert force_sync.set('{"value":"wan","transaction_id":"abc"}') is True
    assert force_sync.get() == ForceSyncRequest("wan", "abc")


def test_defaults_trigger_nothing_but_record():
    fs = ForceSync()
    assert fs.set("telemetry") is True
    assert fs.get().value == "telemetry"


def test_long_value_is_truncated(force_sync):
    force_sync.set("x" * 400)
    assert len(force_sync.get().value) == FIELD_SIZE - 1


def test_parse_full_payload():
    assert parse_force_sync_json(JSON_PAYLOAD) == ForceSyncRequest("root", TRANS_ID)


def test_parse_invalid_json():
    assert parse_force_sync_json("root") == ForceSyncRequest(None, None)


def test_parse_missing_value():
    assert parse_force_sync_json('{"transaction_id":"abc"}') == ForceSyncRequest(
        None, None
    )


def test_parse_empty_fields():
    assert parse_force_sync_json('{"value":"","transaction_id":""}') == (
        ForceSyncRequest(None, None)
    )


def test_parse_missing_transaction_id():
    assert parse_force_sync_json('{"value":"root"}') == ForceSyncRequest("root", None)


def test_parse_keys_ignore_case():
    assert parse_force_sync_json('{"Value":"root","Transaction_ID":"t1"}') == (
        ForceSyncRequest("root", "t1")
    )


def test_parse_non_object():
    assert parse_force_sync_json("[1, 2]") == ForceSyncRequest(None, None)


def test_set_json_without_value_keeps_raw_payload(force_sync):
    payload = '{"other":"x"}'
    force_sync.set(payload)
    assert force_sync.get() == ForceSyncRequest(payload, "")