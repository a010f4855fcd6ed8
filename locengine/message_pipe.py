"""Length-prefixed control messages over a named pipe (FIFO)."""

from __future__ import annotations

import contextlib
import errno
import fcntl
import logging
import os
import struct
from types import TracebackType
from typing import Optional, Type

log = logging.getLogger(__name__)

FIFO_PERMISSIONS = 0o660
HEADER_FORMAT = "@N"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
FLUSH_CHUNK_SIZE = 128
UNBLOCK_LOCK_LENGTH = 32


class PipeError(OSError):
    """Raised when a pipe cannot be created, read, written or controlled."""


class MessagePipe:
    """A named pipe carrying messages that start with their total size.

    Every message begins with a native ``size_t`` holding the length of the
    whole message, header included, followed by the payload.
    """

    def __init__(self, path: Optional[str], fd: int) -> None:
        self.path = path
        self.fd = fd

    @classmethod
    def open(cls, path: str, mode: int) -> "MessagePipe":
        """Create the FIFO at ``path`` if needed and open it with ``mode`` flags."""
        log.debug("%s, mode = %d", path, mode)
        try:
            os.mkfifo(path, FIFO_PERMISSIONS)
        except FileExistsError:
            pass
        except OSError as exc:
            log.error("failed: %s", exc.strerror)
            raise PipeError(f"cannot create pipe {path}: {exc.strerror}") from exc

        # The umask may strip the group bits that mkfifo was asked for.
        try:
            os.chmod(path, FIFO_PERMISSIONS)
        except OSError as exc:
            log.error("failed to change mode for %s, error = %s", path, exc.strerror)

        try:
            fd = os.open(path, mode)
        except OSError as exc:
            log.error("failed: %s", exc.strerror)
            raise PipeError(f"cannot open pipe {path}: {exc.strerror}") from exc
        log.debug("fd = %d, %s", fd, path)
        return cls(path, fd)

    def write(self, data: bytes) -> int:
        """Write raw bytes; return the number written."""
        try:
            return os.write(self.fd, data)
        except OSError as exc:
            raise PipeError(f"pipe write failed: {exc.strerror}") from exc

    def read(self, size: int) -> bytes:
        """Read up to ``size`` raw bytes."""
        try:
            return os.read(self.fd, size)
        except OSError as exc:
            raise PipeError(f"pipe read failed: {exc.strerror}") from exc

    def send(self, payload: bytes) -> int:
        """Send one message; return its total size in bytes, header included."""
        total = HEADER_SIZE + len(payload)
        message = struct.pack(HEADER_FORMAT, total) + bytes(payload)
        written = self.write(message)
        if written != total:
            log.error("pipe broken %d, msgsz = %d", written, total)
            raise PipeError(f"pipe broken: wrote {written} of {total} bytes")
        return written

    def receive(self, max_size: int) -> bytes:
        """Receive one message and return its payload.

        ``max_size`` bounds the total message size, header included.
        """
        header = self.read(HEADER_SIZE)
        if len(header) != HEADER_SIZE:
            log.error("pipe broken %d", len(header))
            raise PipeError(f"pipe broken: read {len(header)} header bytes")
        (total,) = struct.unpack(HEADER_FORMAT, header)
        if max_size < total:
            log.error("msgbuf is too small %d < %d", max_size, total)
            raise PipeError(f"message of {total} bytes exceeds buffer of {max_size}")
        if total < HEADER_SIZE:
            raise PipeError(f"message size {total} is smaller than its header")
        remaining = total - HEADER_SIZE
        payload = self.read(remaining) if remaining else b""
        if len(payload) != remaining:
            log.error("pipe broken %d, msgsz = %d", len(payload), total)
            raise PipeError(f"pipe broken: read {len(payload)} of {remaining} payload bytes")
        return payload

    def flush(self) -> int:
        """Discard everything waiting in the pipe; return the bytes discarded."""
        discarded = 0
        while True:
            try:
                chunk = os.read(self.fd, FLUSH_CHUNK_SIZE)
            except BlockingIOError:
                break
            except OSError as exc:
                raise PipeError(f"pipe read failed: {exc.strerror}") from exc
            if not chunk:
                break
            log.debug("flushed %r", chunk)
            discarded += len(chunk)
        return discarded

    def unblock(self) -> None:
        """Release any lock held on the start of the pipe."""
        log.debug("unblock fd %d", self.fd)
        try:
            fcntl.lockf(self.fd, fcntl.LOCK_UN, UNBLOCK_LOCK_LENGTH)
        except (OSError, ValueError) as exc:
            message = getattr(exc, "strerror", None) or str(exc)
            log.error("fcntl failure, %s", message)
            raise PipeError(f"cannot unblock pipe: {message}") from exc

    def remove(self) -> None:
        """Close the pipe and delete its FIFO."""
        with contextlib.suppress(OSError):
            os.close(self.fd)
        if self.path:
            try:
                os.unlink(self.path)
            except OSError as exc:
                if exc.errno != errno.ENOENT:
                    log.debug("unlink %s failed: %s", self.path, exc.strerror)
        log.debug("fd = %d, %s", self.fd, self.path)

    def __enter__(self) -> "MessagePipe":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.remove()