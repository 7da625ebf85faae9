"""
Per-connection echo handling.

Reads happen in fixed BUF_SIZE chunks and each chunk is echoed on its own, so a
line longer than the buffer comes back as several writes. Token substitution is
decided per chunk as well: "%date%" split across two reads is echoed verbatim.

State moves ESTABLISHED -> CLOSING -> CLOSED. CLOSING is entered when the peer
closes (recv returns b"", or the event carries RDHUP/HUP), on a read error, or on
a permanent write error under WriteFailurePolicy.CLOSE. CLOSED is entered by the
server once the fd is deregistered and the socket closed.
"""
import enum
import logging
import socket
import time

from ._types import SourceKind
from .config import BUF_SIZE, WriteFailurePolicy
from .util import format_addr, get_remote_addr

logger = logging.getLogger(__name__)

DATE_TOKEN = b"%date%"
TIME_TOKEN = b"%time%"


class ConnectionState(enum.Enum):
    ESTABLISHED = "established"
    CLOSING = "closing"
    CLOSED = "closed"


class WriteFailure(enum.Enum):
    """
    Transient: the socket could not take the bytes right now (send buffer full,
    interrupted, short write). Permanent: the socket is broken.
    """
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def substitute(chunk: bytes) -> bytes:
    """Replace a chunk that is exactly one of the reserved tokens."""
    # C clients send the string terminator along with the text
    token = chunk.rstrip(b"\x00")
    if token == DATE_TOKEN:
        return time.strftime("%x").encode()
    if token == TIME_TOKEN:
        return time.strftime("%X").encode()
    return chunk


class Connection:
    kind = SourceKind.CONNECTION

    def __init__(
            self,
            sock: socket.socket,
            peer: tuple[str, int] | None,
            read_size: int = BUF_SIZE,
            write_failure_policy: WriteFailurePolicy = WriteFailurePolicy.CLOSE
    ):
        self.sock = sock
        self.fd = sock.fileno()
        self.peer = peer if peer is not None else get_remote_addr(sock)
        self.read_size = read_size
        self.write_failure_policy = write_failure_policy
        self.state = ConnectionState.ESTABLISHED
        self.write_failure_count = 0
        self.last_write_failure: WriteFailure | None = None

    @property
    def closing(self) -> bool:
        return self.state is ConnectionState.CLOSING

    def mark_closing(self, reason: str) -> None:
        if self.state is ConnectionState.ESTABLISHED:
            logger.debug("connection %s closing: %s", format_addr(self.peer), reason)
            self.state = ConnectionState.CLOSING

    def handle_readable(self) -> int:
        """
        Drain the socket, echoing each chunk as it is read. Returns the number of
        chunks handled.
        """
        chunks = 0
        while self.state is ConnectionState.ESTABLISHED:
            try:
                data = self.sock.recv(self.read_size)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as exc:
                logger.info("[!] read from %s failed: %s", format_addr(self.peer), exc)
                self.mark_closing("read error")
                break
            if not data:
                self.mark_closing("peer closed")
                break

            chunks += 1
            reply = substitute(data)
            logger.info("[+] data (%d bytes): %r -> %r", len(data), data, reply)
            self.write(reply)
        return chunks

    def write(self, data: bytes) -> None:
        """
        One send per chunk and no retry. Bytes the socket would not take are
        dropped.
        """
        try:
            sent = self.sock.send(data)
        except (BlockingIOError, InterruptedError) as exc:
            self._write_failed(WriteFailure.TRANSIENT, exc)
            return
        except OSError as exc:
            self._write_failed(WriteFailure.PERMANENT, exc)
            return
        if sent < len(data):
            self._write_failed(
                WriteFailure.TRANSIENT,
                "short write, %d of %d bytes dropped" % (len(data) - sent, len(data))
            )

    def _write_failed(self, failure: WriteFailure, exc) -> None:
        self.write_failure_count += 1
        self.last_write_failure = failure
        logger.error("[!] write() to %s failed (%s): %s", format_addr(self.peer), failure.value, exc)
        if failure is WriteFailure.PERMANENT and self.write_failure_policy is WriteFailurePolicy.CLOSE:
            self.mark_closing("write error")

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        self.sock.close()
        self.state = ConnectionState.CLOSED
