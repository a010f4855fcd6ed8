"""XTRA assistance data: callbacks and messages sent to the location adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)


class XtraAdapter(Protocol):
    def send_msg(self, msg: Any) -> None: ...

    def set_xtra_data(self, data: bytes, length: int) -> None: ...

    def request_xtra_server(self) -> None: ...


@dataclass
class XtraCallbacks:
    """Callbacks for an XTRA download request and a reported XTRA server."""

    download_request_cb: Optional[Callable[..., Any]] = None
    report_xtra_server_cb: Optional[Callable[..., Any]] = None


@dataclass
class InjectXtraData:
    """A message that hands a private copy of XTRA data to the adapter."""

    adapter: XtraAdapter
    data: bytes

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        log.debug("length: %d", self.length)

    @property
    def length(self) -> int:
        return len(self.data)

    def proc(self) -> None:
        self.adapter.set_xtra_data(self.data, self.length)

    def __str__(self) -> str:
        return f"length: {self.length}"


@dataclass
class RequestXtraServer:
    """A message asking the adapter for the XTRA server addresses."""

    adapter: XtraAdapter

    def proc(self) -> None:
        self.adapter.request_xtra_server()

    def __str__(self) -> str:
        return "RequestXtraServer"


@dataclass
class XtraModule:
    """XTRA state of one location engine."""

    adapter: XtraAdapter
    callbacks: XtraCallbacks = field(default_factory=XtraCallbacks)
    pending_data: Optional[bytes] = None

    def __init__(self, adapter: XtraAdapter) -> None:
        self.adapter = adapter
        self.callbacks = XtraCallbacks()
        self.pending_data = None

    def init(self, callbacks: Optional[XtraCallbacks]) -> None:
        """Install the XTRA callbacks; raises ValueError if none are given."""
        if callbacks is None:
            log.error("xtra init failed: no callbacks")
            raise ValueError("XTRA callbacks are required")
        self.callbacks = XtraCallbacks(
            download_request_cb=callbacks.download_request_cb,
            report_xtra_server_cb=callbacks.report_xtra_server_cb,
        )

    def inject_data(self, data: bytes) -> InjectXtraData:
        """Send a copy of ``data`` to the adapter; return the message sent."""
        msg = InjectXtraData(self.adapter, data)
        self.adapter.send_msg(msg)
        return msg

    def request_server(self) -> RequestXtraServer:
        """Ask the adapter for the XTRA server; return the message sent."""
        msg = RequestXtraServer(self.adapter)
        log.debug("%s", msg)
        self.adapter.send_msg(msg)
        return msg