"""An in-process message bus and the web configuration client on top of it.

Components open the bus under a name and register data elements on it.
A data element is either a property, served by get and set handlers, or
an event that others subscribe to and the owner publishes on. A handler
signals failure by raising BusError with the matching result code.

The client side holds the operations the sync task performs over the
bus: pushing a document blob, setting and reading parameter lists, and
sending upstream notifications as WRP event messages.
"""

from __future__ import annotations

import base64
import binascii
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

import msgpack

from .types import (
    WEBCFG_UPSTREAM_EVENT,
    BusError,
    RbusError,
    RbusValueType,
    WdmpDataType,
    log,
    rbus_to_wdmp_type,
    wdmp_to_rbus_type,
)

WRP_MSG_TYPE_EVENT = 4
CONTENT_TYPE_JSON = "application/json"
SUBSCRIBE_POLL_SECONDS = 5
DEFAULT_SUBSCRIBE_WAIT = 30

Param = tuple[str, str, Union[WdmpDataType, int]]


class ElementKind(Enum):
    """What a registered data element is."""

    PROPERTY = "property"
    EVENT = "event"


@dataclass
class Property:
    """A named, typed value travelling over the bus."""

    name: str
    value: Any = None
    type: RbusValueType = RbusValueType.NONE


GetHandler = Callable[[str], Property]
SetHandler = Callable[[Property], None]
SubHandler = Callable[[bool, str], None]


@dataclass
class DataElement:
    """A data element a component owns, with the handlers that serve it."""

    name: str
    kind: ElementKind = ElementKind.PROPERTY
    get_handler: Optional[GetHandler] = None
    set_handler: Optional[SetHandler] = None
    sub_handler: Optional[SubHandler] = None


_INT_RANGES = {
    RbusValueType.CHAR: (-(2**7), 2**7 - 1),
    RbusValueType.INT8: (-(2**7), 2**7 - 1),
    RbusValueType.UINT8: (0, 2**8 - 1),
    RbusValueType.BYTE: (0, 2**8 - 1),
    RbusValueType.INT16: (-(2**15), 2**15 - 1),
    RbusValueType.UINT16: (0, 2**16 - 1),
    RbusValueType.INT32: (-(2**31), 2**31 - 1),
    RbusValueType.UINT32: (0, 2**32 - 1),
    RbusValueType.INT64: (-(2**63), 2**63 - 1),
    RbusValueType.UINT64: (0, 2**64 - 1),
}


def _value_from_string(value_type: RbusValueType, text: str) -> Any:
    """Convert the string form of a parameter into a typed bus value."""
    invalid = BusError(
        RbusError.INVALID_INPUT, f"cannot read {text!r} as {value_type.value}"
    )
    if value_type is RbusValueType.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise invalid
    if value_type in _INT_RANGES:
        try:
            number = int(text.strip())
        except ValueError:
            raise invalid from None
        low, high = _INT_RANGES[value_type]
        if not low <= number <= high:
            raise invalid
        return number
    if value_type in (RbusValueType.SINGLE, RbusValueType.DOUBLE):
        try:
            return float(text)
        except ValueError:
            raise invalid from None
    if value_type is RbusValueType.BYTES:
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            raise invalid from None
    if value_type in (RbusValueType.STRING, RbusValueType.DATETIME):
        return text
    raise invalid


def _value_to_string(prop: Property) -> str:
    """The string form of a property's value."""
    if prop.type is RbusValueType.BOOLEAN:
        return "true" if prop.value else "false"
    if prop.type is RbusValueType.BYTES:
        return base64.b64encode(bytes(prop.value)).decode("ascii")
    return str(prop.value)


def encode_event_message(
    payload: Union[str, bytes, None], source: str, destination: str
) -> bytes:
    """Pack a WRP event message carrying a JSON payload."""
    message: dict[str, Any] = {
        "msg_type": WRP_MSG_TYPE_EVENT,
        "source": source,
        "dest": destination,
        "content_type": CONTENT_TYPE_JSON,
    }
    if payload is not None:
        log.debug("Notification payload: %s", payload)
        message["payload"] = (
            payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        )
    return msgpack.packb(message, use_bin_type=True)


class MessageBus:
    """A bus connecting the data elements of the components that open it."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.component_name: Optional[str] = None
        self._elements: dict[str, DataElement] = {}
        self._subscriptions: dict[str, queue.Queue] = {}

    @property
    def is_open(self) -> bool:
        """True while the bus is open."""
        return self.component_name is not None

    def __enter__(self) -> "MessageBus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self, component_name: str) -> None:
        """Open the bus for the named component."""
        if not component_name:
            raise BusError(RbusError.INVALID_INPUT, "component name is empty")
        with self._lock:
            if self.is_open:
                raise BusError(RbusError.INVALID_HANDLE, "bus is already open")
            log.debug("bus open for component %s", component_name)
            self.component_name = component_name
        log.info("bus open for %s is success", component_name)

    def close(self) -> None:
        """Close the bus, dropping every element and subscription."""
        with self._lock:
            self._elements.clear()
            self._subscriptions.clear()
            self.component_name = None

    def _require_open(self) -> None:
        if not self.is_open:
            raise BusError(RbusError.NOT_INITIALIZED, "bus is not open")

    def _element(self, name: str, kind: ElementKind) -> DataElement:
        with self._lock:
            self._require_open()
            element = self._elements.get(name)
        if element is None:
            if kind is ElementKind.EVENT:
                raise BusError(RbusError.INVALID_EVENT, f"no event {name}")
            raise BusError(RbusError.ELEMENT_DOES_NOT_EXIST, f"no element {name}")
        if element.kind is not kind:
            if kind is ElementKind.EVENT:
                raise BusError(RbusError.INVALID_EVENT, f"{name} is not an event")
            raise BusError(RbusError.INVALID_OPERATION, f"{name} is not a property")
        return element

    def register(self, elements: Iterable[DataElement]) -> None:
        """Register data elements; none is added if any name is taken."""
        elements = list(elements)
        with self._lock:
            self._require_open()
            names = [element.name for element in elements]
            for name in names:
                if name in self._elements or names.count(name) > 1:
                    raise BusError(
                        RbusError.ELEMENT_NAME_DUPLICATE, f"{name} is already registered"
                    )
            for element in elements:
                self._elements[element.name] = element
        log.debug("registered %d data elements", len(elements))

    def unregister(self, names: Iterable[str]) -> None:
        """Remove registered data elements and their subscriptions."""
        names = list(names)
        with self._lock:
            self._require_open()
            for name in names:
                if name not in self._elements:
                    raise BusError(RbusError.ELEMENT_DOES_NOT_EXIST, f"no element {name}")
            for name in names:
                del self._elements[name]
                self._subscriptions.pop(name, None)

    def get(self, names: Iterable[str]) -> list[Property]:
        """Read the named properties through their get handlers."""
        names = list(names)
        self._require_open()
        if not names:
            raise BusError(RbusError.INVALID_INPUT, "no parameter names given")
        result = []
        for name in names:
            element = self._element(name, ElementKind.PROPERTY)
            if element.get_handler is None:
                raise BusError(RbusError.INVALID_OPERATION, f"{name} cannot be read")
            result.append(element.get_handler(name))
        return result

    def set(self, name: str, value: Any, value_type: RbusValueType) -> None:
        """Write one property through its set handler."""
        self.set_multi([Property(name, value, value_type)])

    def set_multi(self, properties: Iterable[Property]) -> None:
        """Write several properties; every name is checked before any is set."""
        properties = list(properties)
        self._require_open()
        if not properties:
            raise BusError(RbusError.INVALID_INPUT, "no properties given")
        handlers = []
        for prop in properties:
            element = self._element(prop.name, ElementKind.PROPERTY)
            if element.set_handler is None:
                raise BusError(RbusError.INVALID_OPERATION, f"{prop.name} cannot be set")
            handlers.append((element.set_handler, prop))
        for handler, prop in handlers:
            handler(prop)

    def subscribe(self, event_name: str) -> queue.Queue:
        """Subscribe to an event; published data arrives on the returned queue."""
        element = self._element(event_name, ElementKind.EVENT)
        with self._lock:
            if event_name in self._subscriptions:
                raise BusError(
                    RbusError.INVALID_OPERATION, f"already subscribed to {event_name}"
                )
        if element.sub_handler is not None:
            element.sub_handler(True, event_name)
        events: queue.Queue = queue.Queue()
        with self._lock:
            self._subscriptions[event_name] = events
        return events

    def unsubscribe(self, event_name: str) -> None:
        """End the subscription to an event."""
        element = self._element(event_name, ElementKind.EVENT)
        with self._lock:
            if self._subscriptions.pop(event_name, None) is None:
                raise BusError(RbusError.INVALID_EVENT, f"not subscribed to {event_name}")
        if element.sub_handler is not None:
            element.sub_handler(False, event_name)

    def publish(self, event_name: str, data: Any) -> bool:
        """Publish data on an event; True when a subscriber received it."""
        self._element(event_name, ElementKind.EVENT)
        with self._lock:
            events = self._subscriptions.get(event_name)
        if events is None:
            return False
        events.put(data)
        return True


class WebConfigBusClient:
    """The bus operations the web configuration sync performs."""

    def __init__(self, bus: MessageBus) -> None:
        self.bus = bus
        self._subscribed = threading.Event()

    @property
    def subscribed(self) -> bool:
        """True while someone is subscribed to the upstream event."""
        return self._subscribed.is_set()

    def _require_open(self, operation: str) -> None:
        if not self.bus.is_open:
            log.error("%s failed as the bus is not initialized", operation)
            raise BusError(RbusError.NOT_INITIALIZED, "bus is not open")

    def blob_set(self, name: str, data: bytes) -> None:
        """Push a binary document to the named parameter."""
        self._require_open("blob_set")
        try:
            self.bus.set(name, bytes(data), RbusValueType.BYTES)
        except BusError as exc:
            log.error("bus set failed: %s", exc)
            raise
        log.info("bus set success")

    def set_values(self, params: Iterable[Param]) -> None:
        """Set (name, value string, WDMP type) parameters in one commit."""
        self._require_open("set_values")
        properties = []
        for name, value, wdmp_type in params:
            value_type = wdmp_to_rbus_type(wdmp_type)
            if value_type is RbusValueType.NONE:
                log.error("Invalid data type for %s", name)
                raise BusError(RbusError.INVALID_INPUT, f"invalid data type for {name}")
            properties.append(
                Property(name, _value_from_string(value_type, value), value_type)
            )
        self.bus.set_multi(properties)
        log.info("set_values success for %d parameters", len(properties))

    def get_values(self, names: Iterable[str]) -> list[tuple[str, str, WdmpDataType]]:
        """Read parameters as (name, value string, WDMP type) triples."""
        names = list(names)
        self._require_open("get_values")
        properties = self.bus.get(names)
        result = []
        for prop in properties:
            if prop.value is None:
                log.error("Parameter value of %s is empty", prop.name)
                continue
            result.append(
                (prop.name, _value_to_string(prop), rbus_to_wdmp_type(prop.type))
            )
        if not result:
            raise BusError(RbusError.BUS_ERROR, "no parameter values returned")
        return result

    def handle_subscription(self, subscribe: bool, event_name: str) -> None:
        """Track subscribers of the upstream event."""
        log.info(
            "subscription handler: action=%s eventName=%s",
            "subscribe" if subscribe else "unsubscribe",
            event_name,
        )
        if event_name != WEBCFG_UPSTREAM_EVENT:
            log.error("subscription handler: unexpected eventName %s", event_name)
            return
        if subscribe:
            self._subscribed.set()
        else:
            self._subscribed.clear()

    def send_notification(
        self,
        payload: Union[str, bytes, None],
        source: Optional[str],
        destination: Optional[str],
        wait_time: int = DEFAULT_SUBSCRIBE_WAIT,
    ) -> bool:
        """Publish a notification upstream; False when nobody subscribed."""
        if source is None or destination is None:
            return False
        message = encode_event_message(payload, source, destination)
        if not self.subscribed:
            self.wait_for_upstream_subscribe(wait_time)
        if not self.subscribed:
            log.error("Failed to send Notification as no subscription")
            return False
        try:
            self.bus.publish(WEBCFG_UPSTREAM_EVENT, {"value": message})
        except BusError as exc:
            log.error("Failed to send Notification: %s", exc)
            raise
        log.info("Notification successfully sent to %s", WEBCFG_UPSTREAM_EVENT)
        return True

    def wait_for_upstream_subscribe(self, wait_time: int = DEFAULT_SUBSCRIBE_WAIT) -> bool:
        """Wait up to about ``wait_time`` seconds for an upstream subscriber."""
        if self.subscribed:
            return True
        log.error(
            "Waiting for %s event subscription for %ds", WEBCFG_UPSTREAM_EVENT, wait_time
        )
        polls = max(int(wait_time / SUBSCRIBE_POLL_SECONDS), 1)
        if not self._subscribed.wait(polls * SUBSCRIBE_POLL_SECONDS):
            log.error(
                "Waited for %s event subscription for %ds, proceeding",
                WEBCFG_UPSTREAM_EVENT,
                wait_time,
            )
        return self.subscribed