import logging
import os
import socket
import threading
import time

import pytest

from epoll_echo.config import Config
from epoll_echo.server import Server


def wait_for(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def recv_at_least(sock, count, timeout=2.0):
    sock.settimeout(timeout)
    data = b""
    while len(data) < count:
        chunk = sock.recv(256)
        if not chunk:
            break
        data += chunk
    return data


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeSocket:
    """Stands in for a non-blocking socket: serves queued bytes, then would-block."""

    def __init__(self, incoming=b"", eof=False, recv_error=None, send_error=None, send_limit=None, fd=1000):
        self.incoming = bytearray(incoming)
        self.eof = eof
        self.recv_error = recv_error
        self.send_error = send_error
        self.send_limit = send_limit
        self.fd = fd
        self.sent = []
        self.closed = False

    def fileno(self):
        return self.fd

    def recv(self, size):
        if self.incoming:
            data = bytes(self.incoming[:size])
            del self.incoming[:size]
            return data
        if self.recv_error is not None:
            raise self.recv_error
        if self.eof:
            return b""
        raise BlockingIOError

    def send(self, data):
        if self.send_error is not None:
            raise self.send_error
        if self.send_limit is not None:
            data = data[:self.send_limit]
        self.sent.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True


class FakeListenSocket:
    """Listening socket whose accept() plays back queued results, then would-block."""

    def __init__(self, outcomes=(), fd=2000):
        self.outcomes = list(outcomes)
        self.fd = fd
        self.closed = False

    def fileno(self):
        return self.fd

    def getsockname(self):
        return ("127.0.0.1", 9090)

    def accept(self):
        if not self.outcomes:
            raise BlockingIOError
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def restore_package_logger():
    package_logger = logging.getLogger("epoll_echo")
    saved = (package_logger.handlers[:], package_logger.level, package_logger.propagate)
    yield
    package_logger.handlers[:], package_logger.level, package_logger.propagate = saved


@pytest.fixture
def control_pipe():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


class RunningServer:

    def __init__(self, server, thread, write_fd):
        self.server = server
        self.thread = thread
        self.write_fd = write_fd

    @property
    def address(self):
        return self.server.address

    def connect(self):
        return socket.create_connection(self.address, timeout=2.0)

    def send_control(self, data: bytes):
        os.write(self.write_fd, data)

    def stop(self, timeout=5.0):
        if self.thread.is_alive():
            self.send_control(b"exit\n")
            self.thread.join(timeout)
        return not self.thread.is_alive()


@pytest.fixture
def start_server(control_pipe):
    read_fd, pipe_write_fd = control_pipe
    started = []

    def _start(control_fd=None, write_fd=None, **overrides):
        options = {"host": "127.0.0.1", "port": 0}
        options.update(overrides)
        server = Server(Config(**options), control_fd=read_fd if control_fd is None else control_fd)
        server.startup()
        thread = threading.Thread(target=server.serve, daemon=True)
        thread.start()
        running = RunningServer(server, thread, pipe_write_fd if write_fd is None else write_fd)
        started.append(running)
        return running

    yield _start

    for running in started:
        running.stop()


@pytest.fixture
def echo_server(start_server):
    return start_server()
