"""Network-initiated (NI) location requests and the user's responses to them."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)

NI_NO_RESPONSE_TIME = 20
NI_EXTRA_RESPONSE_TIME = 5
NI_NOTIF_KEY_ADDRESS = "Address"
NI_PRIVACY_OVERRIDE = 0x0004


class UserResponse(enum.IntEnum):
    """The user's answer to a network-initiated request."""

    ACCEPT = 1
    DENY = 2
    NORESP = 3
    IGNORE = 4


class NiType(enum.IntEnum):
    VOICE = 1
    UMTS_SUPL = 2
    UMTS_CTRL_PLANE = 3
    EMERGENCY_SUPL = 4


class NiAdapter(Protocol):
    def send_msg(self, msg: Any) -> None: ...

    def inform_ni_response(self, response: UserResponse, payload: Any) -> None: ...


@dataclass
class NiNotification:
    """A network-initiated request to be shown to the user.

    ``timeout`` is in seconds; zero means the default of
    :data:`NI_NO_RESPONSE_TIME`. ``notification_id`` is filled in when the
    request is accepted for display.
    """

    ni_type: NiType = NiType.UMTS_SUPL
    notify_flags: int = 0
    timeout: float = 0
    default_response: UserResponse = UserResponse.NORESP
    requestor_id: str = ""
    requestor_id_encoding: int = 0
    text: str = ""
    text_encoding: int = 0
    extras: str = ""
    notification_id: int = 0


@dataclass
class InformNiResponse:
    """A message handing the user's response and the raw request to the adapter."""

    adapter: NiAdapter
    response: UserResponse
    payload: Any

    def __post_init__(self) -> None:
        self.log()

    def proc(self) -> None:
        self.adapter.inform_ni_response(self.response, self.payload)

    def log(self) -> None:
        log.debug("InformNiResponse - response: %s", UserResponse(self.response).name)


@dataclass
class NiSession:
    """State of one pending NI request; ``raw_request`` is None when idle."""

    resp_time_left: float = 0
    resp_recvd: bool = False
    raw_request: Any = None
    req_id: int = 0
    resp: UserResponse = UserResponse.NORESP
    adapter: Optional[NiAdapter] = None
    thread: Optional[threading.Thread] = None
    cond: threading.Condition = field(default_factory=threading.Condition, repr=False)

    @property
    def active(self) -> bool:
        return self.raw_request is not None

    def wake(self, response: Optional[UserResponse] = None) -> None:
        """Record a response (if given) and wake the session's timeout thread."""
        with self.cond:
            if response is not None:
                self.resp = response
            self.resp_recvd = True
            self.cond.notify()


NotifyCallback = Callable[[NiNotification], Any]


class NiEngine:
    """Tracks one regular and one emergency NI session.

    Each accepted request starts a thread that waits for the user's answer
    and sends it to the adapter, or sends "no response" when the request
    times out. ``mute_session`` is called for privacy-override requests.
    """

    def __init__(self, adapter: NiAdapter, mute_session: Optional[Callable[[], Any]] = None) -> None:
        self.adapter = adapter
        self.mute_session = mute_session
        self.notify_cb: Optional[NotifyCallback] = None
        self.session = NiSession()
        self.session_es = NiSession()
        self.req_id_counter = 0
        self.grace_seconds: float = NI_EXTRA_RESPONSE_TIME

    def init(self, notify_cb: Optional[NotifyCallback]) -> bool:
        """Install the notification callback.

        Returns False if a callback was already installed, leaving it in
        place. Raises ValueError if ``notify_cb`` is None.
        """
        if notify_cb is None:
            log.error("ni init failed: no callback")
            raise ValueError("an NI notification callback is required")
        if self.notify_cb is not None:
            log.debug("ni init: already initialised")
            return False
        self.session = NiSession()
        self.session_es = NiSession()
        self.notify_cb = notify_cb
        return True

    def _require_init(self) -> None:
        if self.notify_cb is None:
            raise RuntimeError("NI has not been initialised")

    def request(self, notification: NiNotification, pass_through: Any) -> Optional[int]:
        """Show a request to the user unless one is already in progress.

        Returns the notification id given to the request, or None when it is
        ignored because a session is busy. ``pass_through`` is the raw request
        that goes back to the adapter with the response; it must not be None.
        """
        self._require_init()
        if pass_through is None:
            raise ValueError("the raw NI request must not be None")

        if notification.ni_type == NiType.EMERGENCY_SUPL:
            if self.session_es.active:
                log.warning("supl es NI in progress, new supl es NI ignored, type: %d",
                            notification.ni_type)
                return None
            session = self.session_es
        else:
            if self.session.active or self.session_es.active:
                log.warning("supl NI in progress, new supl NI ignored, type: %d",
                            notification.ni_type)
                return None
            session = self.session

        session.raw_request = pass_through
        self.req_id_counter += 1
        session.req_id = self.req_id_counter
        session.adapter = self.adapter
        notification.notification_id = session.req_id

        if notification.notify_flags == NI_PRIVACY_OVERRIDE and self.mute_session is not None:
            self.mute_session()

        log.info("Notification: notif_type: %d, timeout: %s, default_resp: %d",
                 notification.ni_type, notification.timeout, notification.default_response)
        log.info("requestor_id: %s (encoding: %d)",
                 notification.requestor_id, notification.requestor_id_encoding)
        log.info("text: %s (encoding: %d)", notification.text, notification.text_encoding)
        if notification.extras:
            log.info("extras: %s", notification.extras)

        # A timeout thread clears the session even if the user never answers.
        timeout = notification.timeout if notification.timeout != 0 else NI_NO_RESPONSE_TIME
        session.resp_time_left = self.grace_seconds + timeout
        log.info("Automatically sends 'no response' in %s seconds", session.resp_time_left)

        session.thread = threading.Thread(
            target=self._session_thread, args=(session,), name="loc_eng_ni", daemon=True
        )
        session.thread.start()

        self.notify_cb(notification)
        return notification.notification_id

    @staticmethod
    def _session_thread(session: NiSession) -> None:
        msg: Optional[InformNiResponse] = None
        adapter = session.adapter
        with session.cond:
            deadline = time.monotonic() + session.resp_time_left
            while not session.resp_recvd:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    session.resp = UserResponse.NORESP
                    log.debug("NI session timed out")
                    break
                session.cond.wait(remaining)
            session.resp_recvd = False

            # After an engine restart the raw request is gone: exit quietly.
            if session.raw_request is not None:
                if session.resp != UserResponse.IGNORE and adapter is not None:
                    msg = InformNiResponse(adapter, session.resp, session.raw_request)
                else:
                    log.debug("ignore reply for SUPL ES")
                session.raw_request = None

        session.resp_time_left = 0
        session.req_id = 0

        if msg is not None:
            adapter.send_msg(msg)

    def respond(self, notif_id: int, user_response: UserResponse) -> None:
        """Deliver the user's answer to the session with id ``notif_id``.

        Accepting an emergency request makes a pending regular request be
        ignored. Raises LookupError if no active session has that id.
        """
        self._require_init()
        es, regular = self.session_es, self.session
        target: Optional[NiSession] = None

        if notif_id == es.req_id and es.active:
            target = es
            if user_response == UserResponse.ACCEPT and regular.active:
                regular.wake(UserResponse.IGNORE)
        elif notif_id == regular.req_id and regular.active:
            target = regular

        if target is None:
            log.error("notif_id %d not an active session", notif_id)
            raise LookupError(f"notification {notif_id} is not an active session")

        log.info("send user response %d for notif %d", user_response, notif_id)
        target.wake(UserResponse(user_response))

    def reset_on_engine_restart(self) -> None:
        """Drop pending requests and let their threads exit without answering."""
        self._require_init()
        for session in (self.session_es, self.session):
            if session.active:
                session.raw_request = None
                session.wake()