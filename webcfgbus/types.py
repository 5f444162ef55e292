"""Value types, status codes and the mappings between them.

The message bus speaks its own value types and error codes; the
configuration layer above it uses WDMP data types and CCSP status
codes. This module holds the enumerations for both sides and the
translations between them, plus the names of the data elements that
the web configuration component owns.
"""

from __future__ import annotations

import logging
from enum import Enum, IntEnum

LOGGING_MODULE = "WEBCONFIG"
RDK_LOGGING_MODULE = "LOG.RDK.WEBCONFIG"

log = logging.getLogger(LOGGING_MODULE)

BUFF_LEN = 1024
MAX_PARAM_LEN = 128
MAX_PARAMETERNAME_LEN = 4096
NUM_WEBCFG_ELEMENTS = 8

WEBCFG_COMPONENT_NAME = "webconfig"
WEBCFG_EVENT_NAME = "webconfigSignal"

WEBCFG_RFC_PARAM = "Device.X_RDK_WebConfig.RfcEnable"
WEBCFG_URL_PARAM = "Device.X_RDK_WebConfig.URL"
WEBCFG_FORCESYNC_PARAM = "Device.X_RDK_WebConfig.ForceSync"
WEBCFG_DATA_PARAM = "Device.X_RDK_WebConfig.Data"
WEBCFG_SUPPORTED_DOCS_PARAM = "Device.X_RDK_WebConfig.SupportedDocs"
WEBCFG_SUPPORTED_VERSION_PARAM = "Device.X_RDK_WebConfig.SupportedSchemaVersion"
WEBCFG_SUPPLEMENTARY_TELEMETRY_PARAM = (
    "Device.X_RDK_WebConfig.SupplementaryServiceUrls.Telemetry"
)
WEBCFG_UPSTREAM_EVENT = "Webconfig.Upstream"
PARAM_RFC_ENABLE = "eRT.com.cisco.spvtg.ccsp.webpa.WebConfigRfcEnable"


class RbusValueType(Enum):
    """Types a value on the message bus can carry."""

    BOOLEAN = "boolean"
    CHAR = "char"
    BYTE = "byte"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    SINGLE = "single"
    DOUBLE = "double"
    DATETIME = "datetime"
    STRING = "string"
    BYTES = "bytes"
    PROPERTY = "property"
    OBJECT = "object"
    NONE = "none"


class WdmpDataType(IntEnum):
    """Data types of parameters in the configuration layer."""

    STRING = 0
    INT = 1
    UINT = 2
    BOOLEAN = 3
    DATETIME = 4
    BASE64 = 5
    LONG = 6
    ULONG = 7
    FLOAT = 8
    DOUBLE = 9
    BYTE = 10
    NONE = 11


class RbusError(IntEnum):
    """Result codes of message bus operations."""

    SUCCESS = 0
    BUS_ERROR = 1
    INVALID_INPUT = 2
    NOT_INITIALIZED = 3
    OUT_OF_RESOURCES = 4
    DESTINATION_NOT_FOUND = 5
    DESTINATION_NOT_REACHABLE = 6
    DESTINATION_RESPONSE_FAILURE = 7
    INVALID_RESPONSE_FROM_DESTINATION = 8
    INVALID_OPERATION = 9
    INVALID_EVENT = 10
    INVALID_HANDLE = 11
    SESSION_ALREADY_EXIST = 12
    COMPONENT_NAME_DUPLICATE = 13
    ELEMENT_NAME_DUPLICATE = 14
    ELEMENT_NAME_MISSING = 15
    COMPONENT_DOES_NOT_EXIST = 16
    ELEMENT_DOES_NOT_EXIST = 17
    ACCESS_NOT_ALLOWED = 18


class CcspStatus(IntEnum):
    """Status codes reported to the configuration layer."""

    OK = 100
    OOM = 101
    ERROR = 102
    CANNOT_CONNECT = 190
    TIMEOUT = 191
    NOT_EXIST = 192
    NOT_SUPPORT = 193
    UNSUPPORTED_NAMESPACE = 204
    INVALID_PARAMETER_VALUE = 9007
    UNSUPPORTED_PROTOCOL = 9013


class WdmpStatus(IntEnum):
    """Overall outcome of a parameter operation."""

    SUCCESS = 0
    FAILURE = 1
    ERR_TIMEOUT = 2
    ERR_UNSUPPORTED_NAMESPACE = 3
    ERR_INVALID_PARAMETER_VALUE = 4


class BusError(Exception):
    """A message bus operation failed with the given result code."""

    def __init__(self, code: RbusError | int, message: str = "") -> None:
        try:
            self.code: RbusError | int = RbusError(code)
        except ValueError:
            self.code = code
        name = self.code.name if isinstance(self.code, RbusError) else str(code)
        super().__init__(message or f"bus operation failed: {name}")

    @property
    def ccsp_status(self) -> CcspStatus:
        """The CCSP status code this failure maps to."""
        return rbus_to_ccsp_status(self.code)

    @property
    def wdmp_status(self) -> WdmpStatus:
        """The WDMP outcome this failure maps to."""
        return ccsp_to_wdmp_status(self.ccsp_status)


_RBUS_TO_WDMP = {
    RbusValueType.INT16: WdmpDataType.INT,
    RbusValueType.INT32: WdmpDataType.INT,
    RbusValueType.UINT16: WdmpDataType.UINT,
    RbusValueType.UINT32: WdmpDataType.UINT,
    RbusValueType.INT64: WdmpDataType.LONG,
    RbusValueType.UINT64: WdmpDataType.ULONG,
    RbusValueType.SINGLE: WdmpDataType.FLOAT,
    RbusValueType.DOUBLE: WdmpDataType.DOUBLE,
    RbusValueType.DATETIME: WdmpDataType.DATETIME,
    RbusValueType.BOOLEAN: WdmpDataType.BOOLEAN,
    RbusValueType.CHAR: WdmpDataType.INT,
    RbusValueType.INT8: WdmpDataType.INT,
    RbusValueType.UINT8: WdmpDataType.UINT,
    RbusValueType.BYTE: WdmpDataType.UINT,
    RbusValueType.STRING: WdmpDataType.STRING,
    RbusValueType.BYTES: WdmpDataType.BYTE,
}

_WDMP_TO_RBUS = {
    WdmpDataType.INT: RbusValueType.INT32,
    WdmpDataType.UINT: RbusValueType.UINT32,
    WdmpDataType.LONG: RbusValueType.INT64,
    WdmpDataType.ULONG: RbusValueType.UINT64,
    WdmpDataType.FLOAT: RbusValueType.SINGLE,
    WdmpDataType.DOUBLE: RbusValueType.DOUBLE,
    WdmpDataType.DATETIME: RbusValueType.DATETIME,
    WdmpDataType.BOOLEAN: RbusValueType.BOOLEAN,
    WdmpDataType.STRING: RbusValueType.STRING,
    WdmpDataType.BASE64: RbusValueType.STRING,
    WdmpDataType.BYTE: RbusValueType.BYTES,
}

_RBUS_TO_CCSP = {
    RbusError.SUCCESS: CcspStatus.OK,
    RbusError.BUS_ERROR: CcspStatus.ERROR,
    RbusError.INVALID_INPUT: CcspStatus.INVALID_PARAMETER_VALUE,
    RbusError.NOT_INITIALIZED: CcspStatus.ERROR,
    RbusError.OUT_OF_RESOURCES: CcspStatus.OOM,
    RbusError.DESTINATION_NOT_FOUND: CcspStatus.CANNOT_CONNECT,
    RbusError.DESTINATION_NOT_REACHABLE: CcspStatus.UNSUPPORTED_NAMESPACE,
    RbusError.DESTINATION_RESPONSE_FAILURE: CcspStatus.TIMEOUT,
    RbusError.INVALID_RESPONSE_FROM_DESTINATION: CcspStatus.UNSUPPORTED_PROTOCOL,
    RbusError.INVALID_OPERATION: CcspStatus.NOT_SUPPORT,
    RbusError.INVALID_EVENT: CcspStatus.NOT_SUPPORT,
    RbusError.INVALID_HANDLE: CcspStatus.NOT_SUPPORT,
    RbusError.SESSION_ALREADY_EXIST: CcspStatus.NOT_SUPPORT,
}

_CCSP_TO_WDMP = {
    CcspStatus.OK: WdmpStatus.SUCCESS,
    CcspStatus.TIMEOUT: WdmpStatus.ERR_TIMEOUT,
    CcspStatus.INVALID_PARAMETER_VALUE: WdmpStatus.ERR_INVALID_PARAMETER_VALUE,
    CcspStatus.UNSUPPORTED_NAMESPACE: WdmpStatus.ERR_UNSUPPORTED_NAMESPACE,
}


def rbus_to_wdmp_type(rbus_type: RbusValueType) -> WdmpDataType:
    """Map a bus value type to its WDMP data type; unknown types give NONE."""
    wdmp_type = _RBUS_TO_WDMP.get(rbus_type, WdmpDataType.NONE)
    log.debug("rbus_to_wdmp_type: wdmp_type is %s", wdmp_type.name)
    return wdmp_type


def wdmp_to_rbus_type(wdmp_type: WdmpDataType | int) -> RbusValueType:
    """Map a WDMP data type to the bus value type; unknown types give NONE."""
    try:
        key = WdmpDataType(wdmp_type)
    except ValueError:
        key = WdmpDataType.NONE
    rbus_type = _WDMP_TO_RBUS.get(key, RbusValueType.NONE)
    log.debug("wdmp_to_rbus_type: rbus_type is %s", rbus_type.name)
    return rbus_type


def rbus_to_ccsp_status(code: RbusError | int) -> CcspStatus:
    """Map a bus result code to a CCSP status; unmapped codes give ERROR."""
    try:
        key = RbusError(code)
    except ValueError:
        key = None
    status = _RBUS_TO_CCSP.get(key, CcspStatus.ERROR)
    log.debug("rbus_to_ccsp_status: CCSP status is %d", status)
    return status


def ccsp_to_wdmp_status(code: CcspStatus | int) -> WdmpStatus:
    """Map a CCSP status code to a WDMP outcome; unmapped codes give FAILURE."""
    try:
        key = CcspStatus(code)
    except ValueError:
        return WdmpStatus.FAILURE
    return _CCSP_TO_WDMP.get(key, WdmpStatus.FAILURE)