"""Force sync requests: parsing, bookkeeping and triggering.

A force sync is requested by setting the ForceSync parameter either to a
plain document name (for example ``"root"``) or to a JSON object of the
form ``{"value": "root", "transaction_id": "..."}``. The request is kept
until the sync that it triggered has run, and a second request that
arrives while one is pending is refused.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .types import log

# Size of the fixed buffers the request fields are kept in; one byte of
# each is reserved for the terminator, so stored strings are one shorter.
FIELD_SIZE = 256
_MAX_FIELD_CHARS = FIELD_SIZE - 1


@dataclass(frozen=True)
class ForceSyncRequest:
    """A force sync document name and the transaction it belongs to."""

    value: Optional[str]
    transaction_id: Optional[str]


class SyncInProgressError(Exception):
    """A boot-up or force sync is already running; the request is ignored."""


def _lookup(obj: list[tuple[str, Any]], key: str) -> tuple[bool, Any]:
    """Find the first member whose name matches ``key`` ignoring case."""
    wanted = key.casefold()
    for name, value in obj:
        if name.casefold() == wanted:
            return True, value
    return False, None


def parse_force_sync_json(payload: str) -> ForceSyncRequest:
    """Extract the document name and transaction id from a JSON payload.

    Fields that are missing, empty or not strings come back as ``None``;
    a payload that is not a JSON object gives a request with both unset.
    """
    try:
        members = json.loads(payload, object_pairs_hook=list)
    except (ValueError, TypeError):
        log.info("Force sync json parsed: [%s]", payload)
        return ForceSyncRequest(None, None)

    if not isinstance(members, list) or not all(
        isinstance(m, tuple) for m in members
    ):
        log.error("forceSyncValObj is NULL")
        return ForceSyncRequest(None, None)

    found, raw_value = _lookup(members, "value")
    if not found:
        log.error("forceSyncValObj is NULL")
        return ForceSyncRequest(None, None)
    _, raw_transid = _lookup(members, "transaction_id")

    value = raw_value if isinstance(raw_value, str) and raw_value else None
    if value is None:
        log.error("forceSyncVal string is empty")
    else:
        log.debug("forceSyncVal value parsed from payload is %s", value)

    transaction_id = (
        raw_transid if isinstance(raw_transid, str) and raw_transid else None
    )
    if transaction_id is None:
        log.error("forceSynctransID is empty")
    else:
        log.debug("forceSynctransID value parsed from json is %s", transaction_id)

    return ForceSyncRequest(value, transaction_id)


def _truncate(text: str) -> str:
    return text[:_MAX_FIELD_CHARS]


class ForceSync:
    """Holds the pending force sync request and signals the sync task."""

    def __init__(
        self,
        is_boot_sync: Optional[Callable[[], bool]] = None,
        on_trigger: Optional[Callable[[], None]] = None,
    ) -> None:
        self._is_boot_sync = is_boot_sync or (lambda: False)
        self._on_trigger = on_trigger or (lambda: None)
        self._lock = threading.RLock()
        self._value = ""
        self._transaction_id = ""

    def set(self, value: Optional[str]) -> bool:
        """Record a force sync request and wake the sync task.

        Returns True when a sync was triggered and False when the request
        was empty, which cancels any pending transaction id. Raises
        SyncInProgressError when a boot-up or earlier force sync is still
        running.
        """
        with self._lock:
            self._value = ""
            transaction_id: Optional[str] = None
            if value is not None:
                self._value = _truncate(value)
                if value:
                    log.info("Received poke request, proceed to parseForceSyncJson")
                    request = parse_force_sync_json(value)
                    transaction_id = request.transaction_id
                    if request.value is not None:
                        log.debug(
                            "After parseForceSyncJson. value %s transactionId %s",
                            request.value,
                            transaction_id,
                        )
                        self._value = _truncate(request.value)
                log.debug("ForceSync string is %s", self._value)

            if not self._value:
                log.debug("Force sync param set with empty value")
                self._transaction_id = ""
                return False

            if self._is_boot_sync():
                log.info("Bootup sync is already in progress, Ignoring this request.")
                raise SyncInProgressError("boot-up sync is already in progress")
            if self._transaction_id:
                log.info("Force sync is already in progress, Ignoring this request.")
                raise SyncInProgressError("force sync is already in progress")

            if transaction_id:
                self._transaction_id = _truncate(transaction_id)
                log.info("ForceSyncTransID is %s", self._transaction_id)
            log.info("Trigger force sync")
            self._on_trigger()
            return True

    def get(self) -> Optional[ForceSyncRequest]:
        """Return the pending request, or None when there is none."""
        with self._lock:
            if not self._value:
                log.debug("no force sync request pending")
                return None
            log.debug("transactionId is %s", self._transaction_id)
            return ForceSyncRequest(self._value, self._transaction_id)

    def clear(self) -> None:
        """Forget the pending request and its transaction id."""
        with self._lock:
            self._value = ""
            self._transaction_id = ""