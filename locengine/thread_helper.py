"""A worker thread with init/pre/loop/post stages and a readiness signal."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)

THREAD_NAME = "loc_eng_dmn_conn"

Stage = Callable[[Any], Any]


class _Joinable(Protocol):
    def join(self, timeout: Optional[float] = None) -> None: ...


CreateThread = Callable[[str, Callable[[], None]], _Joinable]


def _call_stage(stage: Stage, context: Any) -> bool:
    """Run one stage; a stage fails if it raises or returns a negative number."""
    try:
        result = stage(context)
    except Exception:
        log.exception("thread stage %r failed", stage)
        return False
    return not (isinstance(result, (int, float)) and result < 0)


class ThreadHelper:
    """Runs a task loop in its own thread and signals when it is ready.

    Each stage is called with the context. A stage fails when it raises or
    returns a negative number; a failure ends the thread.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self.exit_requested = False
        self.ready = False
        self.context: Any = None
        self._proc_init: Optional[Stage] = None
        self._proc_pre: Optional[Stage] = None
        self._proc: Optional[Stage] = None
        self._proc_post: Optional[Stage] = None
        self._thread: Optional[_Joinable] = None

    def signal_wait(self) -> bool:
        """Block until the helper is ready or asked to exit.

        Returns True when ready, False when an exit was requested.
        """
        with self._cond:
            if not self.ready and not self.exit_requested:
                self._cond.wait()
            return not self.exit_requested

    def signal_ready(self) -> None:
        """Mark the helper ready and wake one waiter."""
        log.debug("signal ready %#x", id(self))
        with self._cond:
            self.ready = True
            self._cond.notify()

    def signal_block(self) -> bool:
        """Clear the ready flag; return whether it was set before."""
        previous = self.ready
        log.debug("signal block %#x", id(self))
        with self._cond:
            self.ready = False
        return previous

    def _run(self) -> None:
        context = self.context
        if self._proc_init is not None and not _call_stage(self._proc_init, context):
            self.exit_requested = True
            self.signal_ready()
            log.error("thread init failed: %#x", id(self))
            return

        self.signal_ready()

        if self._proc_pre is not None and not _call_stage(self._proc_pre, context):
            self.exit_requested = True
            log.error("thread pre-stage failed: %#x", id(self))
            return

        if self._proc is None:
            with self._cond:
                while not self.exit_requested:
                    self._cond.wait()
        else:
            while not self.exit_requested:
                if not _call_stage(self._proc, context):
                    self.exit_requested = True
                    log.error("thread loop failed: %#x", id(self))

        if self._proc_post is not None and not _call_stage(self._proc_post, context):
            log.error("thread post-stage failed: %#x", id(self))

    def launch(
        self,
        proc_init: Optional[Stage] = None,
        proc_pre: Optional[Stage] = None,
        proc: Optional[Stage] = None,
        proc_post: Optional[Stage] = None,
        create_thread: Optional[CreateThread] = None,
        context: Any = None,
    ) -> None:
        """Start the worker thread and wait until it has initialised.

        ``create_thread``, if given, is called with the thread name and a
        no-argument callable; it must run the callable in a new thread and
        return an object with ``join()``. A ``None`` context keeps the
        previous one. Raises RuntimeError if initialisation fails.
        """
        with self._cond:
            self.exit_requested = False
            self.ready = False

        if context is not None:
            self.context = context

        self._proc_init = proc_init
        self._proc_pre = proc_pre
        self._proc = proc
        self._proc_post = proc_post

        log.debug("%#x starting thread", id(self))
        if create_thread is not None:
            self._thread = create_thread(THREAD_NAME, self._run)
        else:
            thread = threading.Thread(target=self._run, name=THREAD_NAME, daemon=True)
            thread.start()
            self._thread = thread

        self.signal_wait()
        log.debug("%#x thread ready", id(self))
        if self.exit_requested:
            raise RuntimeError("worker thread failed to initialise")

    def unblock(self) -> None:
        """Ask the task loop to stop after its current pass."""
        log.debug("unblock %#x", id(self))
        with self._cond:
            self.exit_requested = True
            self._cond.notify_all()

    def join(self) -> None:
        """Wait for the worker thread to finish."""
        if self._thread is None:
            raise RuntimeError("worker thread was never launched")
        self._thread.join()
        self._thread = None