"""The data model the web configuration component serves over the bus.

It owns the RfcEnable, URL, ForceSync, Data, SupportedDocs,
SupportedSchemaVersion and supplementary Telemetry URL parameters, the
upstream notification event and the signal element that other
components write event messages to. Values that must survive a restart
are kept in a parameter store.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Mapping, Optional

from .bus import DataElement, ElementKind, MessageBus, Property, WebConfigBusClient
from .forcesync import ForceSync, SyncInProgressError
from .types import (
    MAX_PARAM_LEN,
    PARAM_RFC_ENABLE,
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
    log,
)

# Event messages are copied into a fixed buffer; one byte is the terminator.
EVENT_MSG_SIZE = 128


def _same_name(name: Optional[str], param: str) -> bool:
    """Compare names over their first MAX_PARAM_LEN characters."""
    return name is not None and name[:MAX_PARAM_LEN] == param[:MAX_PARAM_LEN]


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class ParamStore:
    """A persistent parameter store keyed by parameter name."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, str] = dict(initial or {})

    def get(self, name: str) -> Optional[str]:
        """The stored value of ``name``, or None when nothing is stored."""
        with self._lock:
            return self._values.get(name)

    def store(self, name: str, value: str) -> None:
        """Store ``value`` under ``name``."""
        with self._lock:
            self._values[name] = value


class WebConfigDataModel:
    """Get and set handling for the parameters the component owns."""

    def __init__(
        self,
        store: Optional[ParamStore] = None,
        force_sync: Optional[ForceSync] = None,
        client: Optional[WebConfigBusClient] = None,
        supported_docs: Optional[Callable[[], Optional[str]]] = None,
        supported_version: Optional[Callable[[], Optional[str]]] = None,
        blob_base64: Optional[Callable[[], Optional[str]]] = None,
        telemetry_url: Optional[Callable[[], str]] = None,
        on_rfc_change: Optional[Callable[[bool], None]] = None,
        on_event: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.store = store if store is not None else ParamStore()
        self.force_sync = force_sync if force_sync is not None else ForceSync()
        self.client = client if client is not None else WebConfigBusClient(MessageBus())
        self._supported_docs = supported_docs or (lambda: None)
        self._supported_version = supported_version or (lambda: None)
        self._blob_base64 = blob_base64 or (lambda: None)
        self._telemetry_url = telemetry_url or (lambda: "NULL")
        self._on_rfc_change = on_rfc_change or (lambda enabled: None)
        self._on_event = on_event or (lambda message: None)
        self._lock = threading.RLock()
        self._rfc = False
        self._url: Optional[str] = None
        self._telemetry: Optional[str] = None

    # RFC ----------------------------------------------------------------

    def is_rfc_enabled(self) -> bool:
        """True while the web configuration feature is enabled."""
        with self._lock:
            log.debug("Webconfig RFC = %s", "true" if self._rfc else "false")
            return self._rfc

    def set_rfc_enable(self, value: bool) -> None:
        """Enable or disable the feature and persist the setting.

        A change from disabled to enabled, or back, is reported to the
        ``on_rfc_change`` callback before the value is stored.
        """
        value = bool(value)
        with self._lock:
            if value != self._rfc:
                log.info("RfcEnable dynamic change to %s", "true" if value else "false")
                self._on_rfc_change(value)
            text = "true" if value else "false"
            try:
                self.store.store(PARAM_RFC_ENABLE, text)
            except BusError as exc:
                log.error("store failed for parameter %s and value %s: %s",
                          PARAM_RFC_ENABLE, text, exc)
                raise
            self._rfc = value

    # Get ----------------------------------------------------------------

    def get_value(self, name: str) -> Property:
        """Read one of the component's parameters."""
        if not name:
            log.error("Unable to handle get request for property")
            raise BusError(RbusError.INVALID_INPUT, "property name is empty")
        log.debug("Property Name is %s", name)

        if _same_name(name, WEBCFG_RFC_PARAM):
            return self._get_rfc(name)
        if _same_name(name, WEBCFG_FORCESYNC_PARAM):
            return Property(name, "", RbusValueType.STRING)

        getters: dict[str, Callable[[], str]] = {
            WEBCFG_URL_PARAM: self._get_url,
            WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM: self._get_telemetry,
            WEBCFG_DATA_PARAM: lambda: self._blob_base64() or "",
            WEBCFG_SUPPORTED_DOCS_PARAM: lambda: self._supported_docs() or "",
            WEBCFG_SUPPORTED_VERSION_PARAM: lambda: self._supported_version() or "",
        }
        for param, getter in getters.items():
            if _same_name(name, param):
                if not self.is_rfc_enabled():
                    log.error("RfcEnable is disabled so, %s Get from DB failed", name)
                    return Property(name, "", RbusValueType.STRING)
                return Property(name, getter(), RbusValueType.STRING)
        raise BusError(RbusError.ELEMENT_DOES_NOT_EXIST, f"unexpected parameter {name}")

    def _get_rfc(self, name: str) -> Property:
        stored = self.store.get(PARAM_RFC_ENABLE)
        with self._lock:
            if stored in ("true", "TRUE"):
                self._rfc = True
            log.debug("RfcVal fetched %s", self._rfc)
            return Property(name, self._rfc, RbusValueType.BOOLEAN)

    def _get_url(self) -> str:
        with self._lock:
            if self._url is None:
                self._url = self.store.get(WEBCFG_URL_PARAM)
            if self._url is None:
                log.error("URL is empty")
                return ""
            return self._url

    def _get_telemetry(self) -> str:
        with self._lock:
            if self._telemetry is None:
                self._telemetry = self.store.get(WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM)
            if self._telemetry is None:
                log.error("SupplementaryURL is empty")
                return ""
            return self._telemetry

    # Set ----------------------------------------------------------------

    def set_value(self, name: str, value: Any, value_type: RbusValueType) -> None:
        """Write one of the component's parameters."""
        log.debug("Parameter name is %s", name)
        for read_only in (
            WEBCFG_DATA_PARAM,
            WEBCFG_SUPPORTED_DOCS_PARAM,
            WEBCFG_SUPPORTED_VERSION_PARAM,
        ):
            if _same_name(name, read_only):
                log.error("%s Set is not allowed", name)
                raise BusError(RbusError.ACCESS_NOT_ALLOWED, f"{name} is read-only")

        setters: dict[str, Callable[[str, Any, RbusValueType], None]] = {
            WEBCFG_RFC_PARAM: self._set_rfc,
            WEBCFG_URL_PARAM: self._set_url,
            WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM: self._set_telemetry,
            WEBCFG_FORCESYNC_PARAM: self._set_force_sync,
        }
        for param, setter in setters.items():
            if _same_name(name, param):
                if value is None:
                    log.error("Invalid input to set")
                    raise BusError(RbusError.INVALID_INPUT, "no value to set")
                setter(name, value, value_type)
                return
        log.error("Unexpected parameter = %s", name)
        raise BusError(RbusError.ELEMENT_DOES_NOT_EXIST, f"unexpected parameter {name}")

    def _require_rfc(self, name: str) -> None:
        if not self.is_rfc_enabled():
            log.error("RfcEnable is disabled so, %s SET failed", name)
            raise BusError(RbusError.ACCESS_NOT_ALLOWED, "RfcEnable is disabled")

    @staticmethod
    def _require_type(name: str, value_type: RbusValueType, wanted: RbusValueType) -> None:
        if value_type is not wanted:
            log.error("Unexpected value type for property %s", name)
            raise BusError(RbusError.INVALID_INPUT, f"{name} takes a {wanted.value}")

    def _set_rfc(self, name: str, value: Any, value_type: RbusValueType) -> None:
        self._require_type(name, value_type, RbusValueType.BOOLEAN)
        self.set_rfc_enable(bool(value))

    def _set_url(self, name: str, value: Any, value_type: RbusValueType) -> None:
        self._require_rfc(name)
        self._require_type(name, value_type, RbusValueType.STRING)
        text = _as_text(value)
        with self._lock:
            self._url = text
        self.store.store(WEBCFG_URL_PARAM, text)
        log.info("store success for parameter %s and value %s", name, text)

    def _set_telemetry(self, name: str, value: Any, value_type: RbusValueType) -> None:
        self._require_rfc(name)
        self._require_type(name, value_type, RbusValueType.STRING)
        text = _as_text(value)
        with self._lock:
            self._telemetry = text
        self.store.store(WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM, text)
        log.info("store success for parameter %s and value %s", name, text)

    def _set_force_sync(self, name: str, value: Any, value_type: RbusValueType) -> None:
        self._require_rfc(name)
        self._require_type(name, value_type, RbusValueType.STRING)
        text = _as_text(value)
        if text.startswith("telemetry") and self._telemetry_url().startswith("NULL"):
            log.error("Telemetry url is null so, force sync SET failed")
            raise BusError(RbusError.BUS_ERROR, "telemetry url is not set")
        try:
            self.force_sync.set(text)
        except SyncInProgressError as exc:
            log.info("a sync session is already running")
            raise BusError(RbusError.SESSION_ALREADY_EXIST, str(exc)) from exc

    # Registration and events ---------------------------------------------

    def register(self) -> None:
        """Register the component's data elements, events and signal on the bus."""
        bus = self.client.bus
        log.info("Registering parameters %s, %s, %s %s", WEBCFG_RFC_PARAM,
                 WEBCFG_FORCESYNC_PARAM, WEBCFG_URL_PARAM,
                 WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM)
        if not bus.is_open:
            log.error("register failed in getting bus handles")
            raise BusError(RbusError.NOT_INITIALIZED, "bus is not open")

        def get_handler(element_name: str) -> Property:
            return self.get_value(element_name)

        def set_handler(prop: Property) -> None:
            self.set_value(prop.name, prop.value, prop.type)

        params = (
            WEBCFG_RFC_PARAM,
            WEBCFG_URL_PARAM,
            WEBCFG_FORCESYNC_PARAM,
            WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM,
            WEBCFG_DATA_PARAM,
            WEBCFG_SUPPORTED_DOCS_PARAM,
            WEBCFG_SUPPORTED_VERSION_PARAM,
        )
        elements = [
            DataElement(param, ElementKind.PROPERTY, get_handler, set_handler)
            for param in params
        ]
        elements.append(
            DataElement(
                WEBCFG_UPSTREAM_EVENT,
                ElementKind.EVENT,
                sub_handler=self.client.handle_subscription,
            )
        )
        elements.append(
            DataElement(
                WEBCFG_EVENT_NAME,
                ElementKind.PROPERTY,
                set_handler=lambda prop: self.handle_signal(prop.name, prop.value),
            )
        )
        try:
            bus.register(elements)
        except BusError:
            log.error("Failed in registering data element %s", WEBCFG_RFC_PARAM)
            raise
        self.force_sync.clear()
        log.debug("Registered data element %s with bus", WEBCFG_RFC_PARAM)

    def handle_signal(self, name: Optional[str], value: Any) -> bool:
        """Pass an event message written to the signal element to ``on_event``.

        Returns True when the message was handed on.
        """
        if not _same_name(name, WEBCFG_EVENT_NAME) or value is None:
            return False
        message = _as_text(value)[: EVENT_MSG_SIZE - 1]
        log.info("Received msg %s from topic %s", message, WEBCFG_EVENT_NAME)
        self._on_event(message)
        return True