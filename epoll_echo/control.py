"""
Control surfaces of the server loop.

ControlChannel reads plain lines on a file descriptor, normally standard input.
Only the line "exit" has an effect. Everything else is logged and dropped.

SignalWaker is the descriptor behind signal.set_wakeup_fd, so a signal that
arrives while the loop sits in epoll wait is seen straight away.
"""
import logging
import os
import signal
import socket

from ._types import SourceKind

logger = logging.getLogger(__name__)

EXIT_COMMAND = b"exit"
READ_SIZE = 16


class ControlChannel:
    kind = SourceKind.CONTROL
    # a zero-byte read (^D on a terminal) ends one drain, not the channel; the
    # server drops it only when epoll reports a hang-up
    closing = False

    def __init__(self, fd: int, read_size: int = READ_SIZE):
        self.fd = fd
        self.read_size = read_size
        self.eof = False
        self._pending = b""
        self._was_blocking = os.get_blocking(fd)
        os.set_blocking(fd, False)

    def handle_readable(self) -> bool:
        """
        Drain the fd and return True if an exit line was seen.

        A line without its newline yet is held back until the rest arrives.
        """
        exit_requested = False
        while True:
            try:
                data = os.read(self.fd, self.read_size)
            except (BlockingIOError, InterruptedError):
                break
            if not data:
                self.eof = True
                logger.info("[+] control channel reached end of input")
                break
            self._pending += data

        *lines, self._pending = self._pending.split(b"\n")
        for line in lines:
            if line == EXIT_COMMAND:
                exit_requested = True
            else:
                logger.info("[+] stdin (%d bytes): %r", len(line) + 1, line)
        return exit_requested

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        # the descriptor belongs to whoever handed it in (stdin, a test pipe),
        # only its blocking mode is ours to put back
        if self.fd < 0:
            return
        try:
            os.set_blocking(self.fd, self._was_blocking)
        except OSError as exc:
            logger.debug("cannot restore blocking mode on fd %d: %s", self.fd, exc)
        self.fd = -1


class SignalWaker:
    kind = SourceKind.WAKEUP
    closing = False

    def __init__(self):
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)
        self._writer.setblocking(False)
        self.fd = self._reader.fileno()

    def install(self) -> int:
        """Route signal wakeups here; returns the previous wakeup fd. Main thread only."""
        return signal.set_wakeup_fd(self._writer.fileno(), warn_on_full_buffer=False)

    def drain(self) -> list[int]:
        """Empty the socket and return the signal numbers written to it."""
        signums = []
        while True:
            try:
                data = self._reader.recv(64)
            except (BlockingIOError, InterruptedError):
                break
            if not data:
                break
            signums.extend(data)
        return signums

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        self._reader.close()
        self._writer.close()
