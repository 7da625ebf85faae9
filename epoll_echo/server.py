from typing import Generator
import contextlib
import io
import logging
import signal
import sys
import threading

import click

from ._types import (
    CONNECTION_INTEREST,
    CONTROL_INTEREST,
    LISTENER_INTEREST,
    WAKEUP_INTEREST,
    EventSource,
    ReadinessEvent,
    SourceKind,
)
from .config import Config
from .connection import Connection
from .control import ControlChannel, SignalWaker
from .listener import ListeningEndpoint
from .multiplexer import Multiplexer
from .server_state import ServerState
from .util import format_addr

HANDLED_SIGNALS = {
    signal.SIGINT: "SIGINT",
    signal.SIGTERM: "SIGTERM",
}

logger = logging.getLogger(__name__)


class Server:
    def __init__(self, config: Config, control_fd: int | None = None):
        """
        control_fd is the descriptor read for control commands. None means
        standard input; a process without a usable stdin runs without one.
        """
        self.config = config
        self.control_fd = control_fd
        self.server_state = ServerState()
        self.multiplexer: Multiplexer | None = None
        self.listener: ListeningEndpoint | None = None
        self.control: ControlChannel | None = None
        self.started = False
        self.should_exit = False
        self._captured_signals: list[int] = []
        self._handlers = {
            SourceKind.LISTENER: self.handle_listener,
            SourceKind.CONTROL: self.handle_control,
            SourceKind.CONNECTION: self.handle_connection,
            SourceKind.WAKEUP: self.handle_wakeup,
        }

    def run(self) -> None:
        self.startup()
        self.serve()

    def serve(self) -> None:
        with self.capture_signals():
            try:
                self.main_loop()
            finally:
                self.shutdown()
            logger.info("Server shutdown complete!")

    def startup(self) -> None:
        logger.info("Starting server...")
        self.multiplexer = Multiplexer()
        try:
            self.listener = ListeningEndpoint.create(self.config)
        except OSError as exc:
            logger.error("[!] Cannot listen on %s: %s", format_addr(self.config.address), exc)
            self.multiplexer.close()
            sys.exit(1)
        self.add_source(self.listener, LISTENER_INTEREST)

        control_fd = self._resolve_control_fd()
        if control_fd is not None:
            self.control = ControlChannel(control_fd)
            self.add_source(self.control, CONTROL_INTEREST)

        self.started = True
        self._log_startup_message()

    def _resolve_control_fd(self) -> int | None:
        if self.control_fd is not None:
            return self.control_fd
        try:
            return sys.stdin.fileno()
        except (AttributeError, ValueError, io.UnsupportedOperation):
            logger.warning("No usable standard input, the server can only be stopped by a signal")
            return None

    def _log_startup_message(self) -> None:
        host, port = self.listener.address
        addr_format = "%s:%d"
        message = f"Echo server running on {addr_format} (type 'exit' to quit)"
        color_message = "Echo server running on " + click.style(addr_format, bold=True) + " (type 'exit' to quit)"
        logger.info(
            message,
            host,
            port,
            extra={"color_message": color_message},
        )

    @property
    def address(self) -> tuple[str, int] | None:
        return self.listener.address if self.listener is not None else None

    def add_source(self, source: EventSource, interest: int) -> None:
        self.server_state.add(source)
        self.multiplexer.register(source.fileno(), interest)

    def remove_source(self, fd: int) -> EventSource | None:
        """Deregister, forget and close fd in one step, so no later event in the batch reaches it."""
        self.multiplexer.deregister(fd)
        source = self.server_state.remove(fd)
        if source is not None:
            source.close()
        return source

    def main_loop(self) -> None:
        while not self.should_exit:
            for event in self.multiplexer.wait(self.config.max_events):
                self.dispatch(event)
                if self.should_exit:
                    break

    def dispatch(self, event: ReadinessEvent) -> None:
        source = self.server_state.get(event.fd)
        if source is None:
            # torn down earlier in the same batch
            logger.debug("event %#x for unregistered fd %d", event.events, event.fd)
            return

        self._handlers[source.kind](source, event)

        if self.should_exit:
            return
        if event.closing or source.closing:
            self.teardown(event.fd, source)

    def handle_listener(self, listener: ListeningEndpoint, event: ReadinessEvent) -> None:
        for sock, addr in listener.accept_all():
            conn = Connection(
                sock,
                addr,
                read_size=self.config.read_size,
                write_failure_policy=self.config.write_failure_policy,
            )
            logger.info("[+] connected with %s", format_addr(addr))
            self.add_source(conn, CONNECTION_INTEREST)

    def handle_control(self, control: ControlChannel, event: ReadinessEvent) -> None:
        if control.handle_readable():
            logger.info("Shutting down server...")
            self.should_exit = True

    def handle_connection(self, conn: Connection, event: ReadinessEvent) -> None:
        if event.readable:
            conn.handle_readable()
        else:
            logger.info("[+] unexpected event %#x on %s", event.events, format_addr(conn.peer))

    def handle_wakeup(self, waker: SignalWaker, event: ReadinessEvent) -> None:
        signums = waker.drain()
        if self.should_exit:
            names = ", ".join(HANDLED_SIGNALS.get(signum, str(signum)) for signum in signums)
            logger.info("Received %s, shutting down server...", names or "signal")

    def teardown(self, fd: int, source: EventSource) -> None:
        if source.kind is SourceKind.CONNECTION:
            logger.info("[+] connection closed with %s", format_addr(source.peer))
        elif source.kind is SourceKind.CONTROL:
            logger.info("[+] control channel closed, keep serving")
            self.control = None
        elif source.kind is SourceKind.LISTENER:
            logger.warning("[!] listener hung up")
            self.listener = None
        else:
            logger.warning("[!] %s source hung up", source.kind.value)
        self.remove_source(fd)

    def shutdown(self) -> None:
        """
        Stop accepting, then drop every peer without flushing anything and
        release the multiplexer. Safe to call more than once.
        """
        if self.multiplexer is None or self.multiplexer.closed:
            return
        if self.listener is not None:
            self.remove_source(self.listener.fileno())
        for fd in list(self.server_state.connections):
            self.remove_source(fd)
        if self.control is not None:
            self.remove_source(self.control.fileno())
        self.multiplexer.close()

    # signal handling
    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        """
        Signals can only be listened to from the main thread. The handler only
        sets should_exit; the wakeup fd makes the pending epoll wait return so the
        loop notices.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        waker = SignalWaker()
        previous_wakeup_fd = waker.install()
        self.add_source(waker, WAKEUP_INTEREST)
        original_handlers = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS.keys()}
        try:
            yield
        finally:
            # Restore original signal handlers
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)
            signal.set_wakeup_fd(previous_wakeup_fd)
            self.remove_source(waker.fileno())
            # Raise captured signals in reverse order so the default behaviour still applies
            for captured_signal in reversed(self._captured_signals):
                signal.raise_signal(captured_signal)

    def handle_exit(self, sig: int, frame) -> None:
        self._captured_signals.append(sig)
        self.should_exit = True
