import pytest

from webcfgbus.bus import MessageBus, WebConfigBusClient
from webcfgbus.datamodel import ParamStore, WebConfigDataModel
from webcfgbus.forcesync import ForceSync
from webcfgbus.types import (
    PARAM_RFC_ENABLE,
    WEBCFG_COMPONENT_NAME,
    WEBCFG_DATA_PARAM,
    WEBCFG_EVENT_NAME,
    WEBCFG_FORCESYNC_PARAM,
    WEBCFG_RFC_PARAM,
    WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM,
    WEBCFG_SUPPORTED_DOCS_PARAM,
    WEBCFG_SUPPORTED_VERSION_PARAM,
    WEBCFG_UPSTREAM_EVENT,
    WEBCFG_URL_PARAM,
    BusError,
    RbusError,
    RbusValueType,
)

URL = "https://config.example.com/device/{mac}"


class FailingStore:
    def get(self, name):
        raise BusError(RbusError.BUS_ERROR, "store unavailable")

    def store(self, name, value):
        raise BusError(RbusError.BUS_ERROR, "store unavailable")


def make_model(**kwargs):
    return WebConfigDataModel(**kwargs)


def enabled_model(**kwargs):
    model = make_model(**kwargs)
    model.set_rfc_enable(True)
    return model


def test_param_store_round_trip():
    store = ParamStore({"a": "1"})
    store.store("b", "2")
    assert store.get("a") == "1"
    assert store.get("b") == "2"
    assert store.get("missing") is None


def test_rfc_disabled_by_default():
    assert make_model().is_rfc_enabled() is False


def test_set_rfc_persists_and_reports_transitions():
    changes = []
    store = ParamStore()
    model = make_model(store=store, on_rfc_change=changes.append)
    model.set_rfc_enable(True)
    model.set_rfc_enable(True)
    assert model.is_rfc_enabled() is True
    assert store.get(PARAM_RFC_ENABLE) == "true"
    assert changes == [True]
    model.set_rfc_enable(False)
    assert store.get(PARAM_RFC_ENABLE) == "false"
    assert changes == [True, False]


def test_set_rfc_store_failure_keeps_value():
    model = make_model(store=FailingStore())
    with pytest.raises(BusError) as info:
        model.set_rfc_enable(True)
    assert info.value.code is RbusError.BUS_ERROR
    assert model.is_rfc_enabled() is False


@pytest.mark.parametrize("stored", ["true", "TRUE"])
def test_get_rfc_reads_store(stored):
    model = make_model(store=ParamStore({PARAM_RFC_ENABLE: stored}))
    prop = model.get_value(WEBCFG_RFC_PARAM)
    assert prop.value is True
    assert prop.type is RbusValueType.BOOLEAN
    assert model.is_rfc_enabled() is True


def test_get_rfc_false_when_store_says_false():
    model = make_model(store=ParamStore({PARAM_RFC_ENABLE: "false"}))
    assert model.get_value(WEBCFG_RFC_PARAM).value is False


def test_set_rfc_through_set_value_requires_boolean():
    model = make_model()
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_RFC_PARAM, "true", RbusValueType.STRING)
    assert info.value.code is RbusError.INVALID_INPUT
    model.set_value(WEBCFG_RFC_PARAM, True, RbusValueType.BOOLEAN)
    assert model.is_rfc_enabled() is True


def test_none_value_is_invalid_input():
    model = enabled_model()
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_URL_PARAM, None, RbusValueType.STRING)
    assert info.value.code is RbusError.INVALID_INPUT


def test_url_set_refused_when_rfc_disabled():
    model = make_model()
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_URL_PARAM, URL, RbusValueType.STRING)
    assert info.value.code is RbusError.ACCESS_NOT_ALLOWED


def test_url_round_trip_and_persisted():
    store = ParamStore()
    model = enabled_model(store=store)
    model.set_value(WEBCFG_URL_PARAM, URL, RbusValueType.STRING)
    assert model.get_value(WEBCFG_URL_PARAM).value == URL
    assert store.get(WEBCFG_URL_PARAM) == URL


def test_url_wrong_type_rejected():
    model = enabled_model()
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_URL_PARAM, 5, RbusValueType.INT32)
    assert info.value.code is RbusError.INVALID_INPUT


def test_url_read_from_store_when_not_cached():
    model = enabled_model(store=ParamStore({WEBCFG_URL_PARAM: URL}))
    assert model.get_value(WEBCFG_URL_PARAM).value == URL


def test_url_empty_when_nothing_stored():
    model = enabled_model()
    assert model.get_value(WEBCFG_URL_PARAM).value == ""


def test_gets_are_empty_when_rfc_disabled():
    model = make_model(
        store=ParamStore({WEBCFG_URL_PARAM: URL}),
        supported_docs=lambda: "00000001000000000000000000000001",
    )
    for name in (WEBCFG_URL_PARAM, WEBCFG_SUPPORTED_DOCS_PARAM,
                 WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM, WEBCFG_DATA_PARAM):
        assert model.get_value(name).value == ""


def test_telemetry_round_trip():
    store = ParamStore()
    model = enabled_model(store=store)
    model.set_value(WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM, URL, RbusValueType.STRING)
    assert model.get_value(WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM).value == URL
    assert store.get(WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM) == URL


def test_supported_docs_version_and_data_from_callbacks():
    model = enabled_model(
        supported_docs=lambda: "00000001000000000000000000000001",
        supported_version=lambda: "1234-v0,2345-v0",
        blob_base64=lambda: None,
    )
    assert model.get_value(WEBCFG_SUPPORTED_DOCS_PARAM).value == (
        "00000001000000000000000000000001"
    )
    assert model.get_value(WEBCFG_SUPPORTED_VERSION_PARAM).value == "1234-v0,2345-v0"
    assert model.get_value(WEBCFG_DATA_PARAM).value == ""


@pytest.mark.parametrize(
    "name",
    [WEBCFG_DATA_PARAM, WEBCFG_SUPPORTED_DOCS_PARAM, WEBCFG_SUPPORTED_VERSION_PARAM],
)
def test_read_only_params_refuse_set(name):
    model = enabled_model()
    with pytest.raises(BusError) as info:
        model.set_value(name, "x", RbusValueType.STRING)
    assert info.value.code is RbusError.ACCESS_NOT_ALLOWED


def test_unknown_param_does_not_exist():
    model = enabled_model()
    with pytest.raises(BusError) as info:
        model.get_value("Device.Unknown")
    assert info.value.code is RbusError.ELEMENT_DOES_NOT_EXIST
    with pytest.raises(BusError) as info:
        model.set_value("Device.Unknown", "x", RbusValueType.STRING)
    assert info.value.code is RbusError.ELEMENT_DOES_NOT_EXIST


def test_force_sync_set_triggers_and_get_is_empty():
    triggered = []
    force_sync = ForceSync(on_trigger=lambda: triggered.append(True))
    model = enabled_model(force_sync=force_sync)
    model.set_value(WEBCFG_FORCESYNC_PARAM, "root", RbusValueType.STRING)
    assert triggered == [True]
    assert force_sync.get().value == "root"
    assert model.get_value(WEBCFG_FORCESYNC_PARAM).value == ""


def test_force_sync_second_request_is_session_exists():
    model = enabled_model()
    payload = '{"value":"root","transaction_id":"txn-1"}'
    model.set_value(WEBCFG_FORCESYNC_PARAM, payload, RbusValueType.STRING)
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_FORCESYNC_PARAM, payload, RbusValueType.STRING)
    assert info.value.code is RbusError.SESSION_ALREADY_EXIST


def test_force_sync_refused_when_rfc_disabled():
    model = make_model()
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_FORCESYNC_PARAM, "root", RbusValueType.STRING)
    assert info.value.code is RbusError.ACCESS_NOT_ALLOWED


def test_telemetry_force_sync_needs_url():
    model = enabled_model(telemetry_url=lambda: "NULL")
    with pytest.raises(BusError) as info:
        model.set_value(WEBCFG_FORCESYNC_PARAM, "telemetry", RbusValueType.STRING)
    assert info.value.code is RbusError.BUS_ERROR

    ok = enabled_model(telemetry_url=lambda: URL)
    ok.set_value(WEBCFG_FORCESYNC_PARAM, "telemetry", RbusValueType.STRING)
    assert ok.force_sync.get().value == "telemetry"


def test_handle_signal_dispatches_and_truncates():
    events = []
    model = make_model(on_event=events.append)
    assert model.handle_signal(WEBCFG_EVENT_NAME, "privatessid,14464,410448631,ACK,0")
    assert events == ["privatessid,14464,410448631,ACK,0"]
    assert model.handle_signal(WEBCFG_EVENT_NAME, "a" * 300)
    assert len(events[-1]) == 127
    assert model.handle_signal("other", "x") is False
    assert model.handle_signal(WEBCFG_EVENT_NAME, None) is False
    assert len(events) == 2


def test_register_requires_open_bus():
    model = make_model()
    with pytest.raises(BusError) as info:
        model.register()
    assert info.value.code is RbusError.NOT_INITIALIZED


def test_register_serves_elements_over_bus():
    bus = MessageBus()
    bus.open(WEBCFG_COMPONENT_NAME)
    client = WebConfigBusClient(bus)
    events = []
    model = make_model(client=client, on_event=events.append)
    model.register()

    bus.set(WEBCFG_RFC_PARAM, True, RbusValueType.BOOLEAN)
    assert bus.get([WEBCFG_RFC_PARAM])[0].value is True

    bus.set(WEBCFG_URL_PARAM, URL, RbusValueType.STRING)
    assert bus.get([WEBCFG_URL_PARAM])[0].value == URL

    bus.set(WEBCFG_EVENT_NAME, "mesh,1234,410448631,ACK;disabled,0", RbusValueType.STRING)
    assert events == ["mesh,1234,410448631,ACK;disabled,0"]

    bus.subscribe(WEBCFG_UPSTREAM_EVENT)
    assert client.subscribed is True

    with pytest.raises(BusError) as info:
        model.register()
    assert info.value.code is RbusError.ELEMENT_NAME_DUPLICATE


def test_register_clears_pending_force_sync():
    bus = MessageBus()
    bus.open(WEBCFG_COMPONENT_NAME)
    force_sync = ForceSync()
    force_sync.set("root")
    model = make_model(client=WebConfigBusClient(bus), force_sync=force_sync)
    model.register()
    assert force_sync.get() is None