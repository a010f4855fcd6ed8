"""Control messages from the data-connection daemon and their handling."""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

log = logging.getLogger(__name__)

SSID_BUF_SIZE = 32 + 1
IPV6_ADDR_SIZE = 16

# The union is aligned like its widest member (an unsigned long); "0L" pads
# a native layout up to that alignment.
_HEADER_FORMAT = "@NHIB0L"
_IF_REQUEST_FORMAT = f"@iiL{IPV6_ADDR_SIZE}s{SSID_BUF_SIZE}s{SSID_BUF_SIZE}s0L"
_INT_FORMAT = "@i"

HEADER_SIZE = struct.calcsize(_HEADER_FORMAT)
UNION_SIZE = max(struct.calcsize(_IF_REQUEST_FORMAT), struct.calcsize(_INT_FORMAT))
MESSAGE_SIZE = HEADER_SIZE + UNION_SIZE


class ControlType(enum.IntEnum):
    """Kind of a control message; values below 0xF0 are daemon-internal."""

    IF_REQUEST = 0xF0
    IF_RELEASE = 0xF1
    RESPONSE = 0xF2
    UNBLOCK = 0xF3


class ResponseResult(enum.IntEnum):
    IF_REQUEST_SUCCESS = 0xF0
    IF_RELEASE_SUCCESS = 0xF1
    IF_FAILURE = 0xF2


class IfRequestType(enum.IntEnum):
    SUPL = 0
    WIFI = 1
    ANY = 2


class IfRequestSenderId(enum.IntEnum):
    QUIPC = 0
    MSAPM = 1
    MSAPU = 2
    GPSONE_DAEMON = 3
    MODEM = 4


class AGpsType(enum.Enum):
    """Kind of data connection asked of the location engine."""

    SUPL = enum.auto()
    WIFI = enum.auto()
    ANY = enum.auto()


class HandlerError(ValueError):
    """Raised for a malformed or unsupported control message."""


def _as_enum(enum_type: type, value: int) -> Union[enum.IntEnum, int]:
    try:
        return enum_type(value)
    except ValueError:
        return value


def _encode_c_string(text: str, name: str) -> bytes:
    raw = text.encode("utf-8")
    if len(raw) >= SSID_BUF_SIZE:
        raise HandlerError(f"{name} of {len(raw)} bytes does not fit in {SSID_BUF_SIZE - 1}")
    return raw


def _decode_c_string(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass
class IfRequest:
    """An interface request or release from a daemon client.

    ``type`` and ``sender_id`` hold a raw int when the value is unknown.
    """

    type: Union[IfRequestType, int] = IfRequestType.SUPL
    sender_id: Union[IfRequestSenderId, int] = IfRequestSenderId.QUIPC
    ipv4_addr: int = 0
    ipv6_addr: bytes = bytes(IPV6_ADDR_SIZE)
    ssid: str = ""
    password: str = ""

    def _pack(self) -> bytes:
        if len(self.ipv6_addr) > IPV6_ADDR_SIZE:
            raise HandlerError(f"IPv6 address longer than {IPV6_ADDR_SIZE} bytes")
        try:
            return struct.pack(
                _IF_REQUEST_FORMAT,
                int(self.type),
                int(self.sender_id),
                self.ipv4_addr,
                bytes(self.ipv6_addr),
                _encode_c_string(self.ssid, "ssid"),
                _encode_c_string(self.password, "password"),
            )
        except struct.error as exc:
            raise HandlerError(f"cannot pack interface request: {exc}") from exc

    @classmethod
    def _unpack(cls, data: bytes) -> "IfRequest":
        req_type, sender, ipv4, ipv6, ssid, secret = struct.unpack_from(_IF_REQUEST_FORMAT, data)
        return cls(
            type=_as_enum(IfRequestType, req_type),
            sender_id=_as_enum(IfRequestSenderId, sender),
            ipv4_addr=ipv4,
            ipv6_addr=ipv6,
            ssid=_decode_c_string(ssid),
            password=_decode_c_string(secret),
        )


@dataclass
class ControlMessage:
    """A control message in the fixed native layout the daemon exchanges.

    ``result`` is used by RESPONSE messages, ``reserved`` by UNBLOCK and
    ``if_request`` by IF_REQUEST and IF_RELEASE.
    """

    ctrl_type: ControlType
    if_request: Optional[IfRequest] = None
    result: int = 0
    reserved: int = 0
    reserved1: int = 0
    reserved2: int = 0

    def pack(self) -> bytes:
        """Return the whole message, its leading size field set to its length."""
        if self.ctrl_type in (ControlType.IF_REQUEST, ControlType.IF_RELEASE):
            body = (self.if_request or IfRequest())._pack()
        elif self.ctrl_type == ControlType.RESPONSE:
            body = struct.pack(_INT_FORMAT, int(self.result))
        else:
            body = struct.pack(_INT_FORMAT, int(self.reserved))
        header = struct.pack(
            _HEADER_FORMAT, MESSAGE_SIZE, self.reserved1, self.reserved2, int(self.ctrl_type)
        )
        return header + body.ljust(UNION_SIZE, b"\0")

    @classmethod
    def unpack(cls, data: bytes) -> "ControlMessage":
        """Parse a message produced by :meth:`pack`."""
        if len(data) < MESSAGE_SIZE:
            raise HandlerError(f"control message of {len(data)} bytes is shorter than {MESSAGE_SIZE}")
        _size, reserved1, reserved2, raw_type = struct.unpack_from(_HEADER_FORMAT, data)
        try:
            ctrl_type = ControlType(raw_type)
        except ValueError as exc:
            raise HandlerError(f"unknown control message type {raw_type:#x}") from exc
        body = data[HEADER_SIZE:MESSAGE_SIZE]
        message = cls(ctrl_type=ctrl_type, reserved1=reserved1, reserved2=reserved2)
        if ctrl_type in (ControlType.IF_REQUEST, ControlType.IF_RELEASE):
            message.if_request = IfRequest._unpack(body)
        elif ctrl_type == ControlType.RESPONSE:
            (message.result,) = struct.unpack_from(_INT_FORMAT, body)
        else:
            (message.reserved,) = struct.unpack_from(_INT_FORMAT, body)
        return message


@dataclass
class WifiRequest:
    """Ask the engine to bring a Wi-Fi connection up or release it."""

    loc_api_handle: Any
    agps_type: AGpsType
    sender_id: IfRequestSenderId
    ssid: str
    password: str
    is_request: bool


@dataclass
class BitRequest:
    """Ask the engine to bring a BIT data connection up or release it."""

    loc_api_handle: Any
    agps_type: AGpsType
    ipv4_addr: int
    ipv6_addr: bytes = field(default=bytes(IPV6_ADDR_SIZE))
    is_request: bool = True


_AGPS_TYPES = {
    IfRequestType.SUPL: AGpsType.SUPL,
    IfRequestType.WIFI: AGpsType.WIFI,
    IfRequestType.ANY: AGpsType.ANY,
}

_WIFI_SENDERS = (
    IfRequestSenderId.QUIPC,
    IfRequestSenderId.MSAPM,
    IfRequestSenderId.MSAPU,
)

EngineMessage = Union[WifiRequest, BitRequest]


class DataConnectionHandler:
    """Turns daemon interface requests into engine messages passed to ``send``."""

    def __init__(self, loc_api_handle: Any, send: Callable[[EngineMessage], Any]) -> None:
        self.loc_api_handle = loc_api_handle
        self.send = send

    def _dispatch(self, message: ControlMessage, is_request: bool) -> EngineMessage:
        request = message.if_request
        if request is None:
            raise HandlerError("control message carries no interface request")

        agps_type = _AGPS_TYPES.get(request.type)
        if agps_type is None:
            log.debug("invalid IF_REQUEST_TYPE!")
            raise HandlerError(f"invalid interface request type {request.type!r}")
        log.debug("IF_REQUEST_TYPE_%s", agps_type.name)

        sender = request.sender_id
        if sender in _WIFI_SENDERS:
            engine_msg: EngineMessage = WifiRequest(
                loc_api_handle=self.loc_api_handle,
                agps_type=agps_type,
                sender_id=IfRequestSenderId(sender),
                ssid=request.ssid,
                password=request.password,
                is_request=is_request,
            )
        elif sender == IfRequestSenderId.GPSONE_DAEMON:
            engine_msg = BitRequest(
                loc_api_handle=self.loc_api_handle,
                agps_type=agps_type,
                ipv4_addr=request.ipv4_addr,
                ipv6_addr=bytes(request.ipv6_addr),
                is_request=is_request,
            )
        else:
            log.debug("invalid IF_REQUEST_SENDER_ID!")
            raise HandlerError(f"invalid interface request sender {sender!r}")
        log.debug("IF_REQUEST_SENDER_ID_%s", IfRequestSenderId(sender).name)

        self.send(engine_msg)
        return engine_msg

    def handle_if_request(self, message: ControlMessage) -> EngineMessage:
        """Forward an interface request; return the engine message sent."""
        if self.loc_api_handle is None:
            log.error("NO agps data handle")
            raise HandlerError("no AGPS data handle")
        return self._dispatch(message, is_request=True)

    def handle_if_release(self, message: ControlMessage) -> EngineMessage:
        """Forward an interface release; return the engine message sent."""
        return self._dispatch(message, is_request=False)