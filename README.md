# webcfgbus

`webcfgbus` is a library for a web configuration agent that serves its
parameters over a component message bus. It is made up of these modules:

- **`webcfgbus.types`** holds the bus value types (`RbusValueType`), the WDMP
  data types (`WdmpDataType`), the bus result codes (`RbusError`), and the
  CCSP and WDMP status codes (`CcspStatus`, `WdmpStatus`). It also has the
  mappings between them: `rbus_to_wdmp_type`, `wdmp_to_rbus_type`,
  `rbus_to_ccsp_status` and `ccsp_to_wdmp_status`. A failed bus operation
  raises `BusError`. Its `code` holds the result code, and its `ccsp_status`
  and `wdmp_status` give the matching statuses.
- **`webcfgbus.forcesync`** parses force-sync payloads with
  `parse_force_sync_json`. A payload is either a plain document name or a JSON
  object with `value` and `transaction_id`. The `ForceSync` class keeps the
  pending request:
  - `set()` records the request and calls `on_trigger`.
  - `get()` returns the pending `ForceSyncRequest`, or `None`.
  - `clear()` forgets the pending request.
  - `set()` raises `SyncInProgressError` while a boot-up sync is running, or
    while an earlier force sync with a transaction id is still pending.
- **`webcfgbus.timer`** provides `SyncTimer`:
  - `init_maintenance_timer()` picks a random second inside the firmware
    upgrade window.
  - `check_maintenance_timer()` and `maintenance_sync_seconds()` report when
    that second is due.
  - `update_retry_time_diff()`, `retry_sync_seconds()`,
    `retry_expiry_timeout()` and `check_retry_timer()` track document retries.

  The module also has the helpers `print_time` and `seconds_of_day`.
- **`webcfgbus.bus`** provides an in-process `MessageBus`. Components `open`
  the bus, `register` `DataElement`s that are properties or events, and then
  use `get`, `set`, `set_multi`, `subscribe`, `unsubscribe` and `publish`.
  `WebConfigBusClient` builds on the bus:
  - `blob_set` pushes a binary document.
  - `set_values` and `get_values` set and read (name, value, WDMP type)
    triples.
  - `send_notification` publishes a msgpack-encoded WRP event message on the
    upstream event (see `encode_event_message`). When nobody has subscribed,
    it first waits for a subscriber.
- **`webcfgbus.datamodel`** provides `WebConfigDataModel`, which serves the
  `Device.X_RDK_WebConfig.*` parameters: RfcEnable, URL, ForceSync, Data,
  SupportedDocs, SupportedSchemaVersion and the supplementary Telemetry URL.
  - It also serves the upstream event and the `webconfigSignal` element.
  - It refuses writes to the read-only parameters.
  - While RfcEnable is off, it refuses writes to URL, Telemetry and ForceSync,
    and reads of the parameters other than RfcEnable and ForceSync return
    empty values.
  - `ParamStore` keeps the RfcEnable, URL and Telemetry values.

## Installation

```
pip install webcfgbus
```

## Example

```python
from webcfgbus.bus import MessageBus, WebConfigBusClient
from webcfgbus.datamodel import ParamStore, WebConfigDataModel
from webcfgbus.forcesync import ForceSync
from webcfgbus.types import RbusValueType, WEBCFG_FORCESYNC_PARAM

bus = MessageBus()
bus.open("webconfig")

force_sync = ForceSync(is_boot_sync=lambda: False, on_trigger=lambda: print("sync!"))
model = WebConfigDataModel(
    store=ParamStore({}),
    force_sync=force_sync,
    client=WebConfigBusClient(bus),
    telemetry_url=lambda: "NULL",
    on_event=lambda message: print("event:", message),
)
model.register()

model.set_rfc_enable(True)
bus.set(WEBCFG_FORCESYNC_PARAM, "root", RbusValueType.STRING)
print(force_sync.get())   # ForceSyncRequest(value='root', transaction_id='')
```

## What it does not do

- The bus is an in-process object. The package does not connect to a system
  message bus daemon or to other processes.
- `ParamStore` keeps values in memory only. Nothing is written to disk.
- The package does not fetch, decode or apply configuration documents.
  Supported documents, the stored blob and the telemetry URL come from
  callables that you pass to `WebConfigDataModel`.
- There is no command-line program or service entry point.

## Running the tests

```
pip install -e ".[test]"
pytest
```