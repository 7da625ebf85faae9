import errno
import logging
import socket
import sys
from typing import Iterator

from ._types import SourceKind
from .config import Config
from .util import get_local_addr

logger = logging.getLogger(__name__)

# accept(2): errors that belong to the queued connection, not to the listener.
# That connection is lost, the next one in the backlog is still good.
ACCEPT_SKIP_ERRNOS = frozenset({
    errno.ECONNABORTED,
    errno.EPROTO,
    errno.ENETDOWN,
    errno.ENOPROTOOPT,
    errno.EHOSTDOWN,
    errno.ENONET,
    errno.EHOSTUNREACH,
    errno.EOPNOTSUPP,
    errno.ENETUNREACH,
})
# Out of descriptors or kernel memory. The drain stops and whatever is queued
# stays in the backlog until the next connection produces a new edge.
ACCEPT_EXHAUSTED_ERRNOS = frozenset({
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOBUFS,
    errno.ENOMEM,
})


class ListeningEndpoint:
    kind = SourceKind.LISTENER
    closing = False

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.fd = sock.fileno()
        self.address = get_local_addr(sock)

    @classmethod
    def create(cls, config: Config) -> "ListeningEndpoint":
        """
        Bind and listen on config.address. Raises OSError from whichever step
        failed; the server treats that as a startup failure.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(config.address)
            # edge-triggered accept needs the listener to report would-block
            sock.setblocking(False)
            sock.listen(config.backlog)
        except OSError:
            sock.close()
            raise
        return cls(sock)

    def accept_all(self) -> Iterator[tuple[socket.socket, tuple[str, int]]]:
        """
        Accept until the kernel has nothing queued. There is no cap on the count.

        Per-connection accept errors skip that connection; running out of
        descriptors or memory ends the drain with the server still up. Any other
        error means the listening socket itself is broken and is fatal.
        """
        while True:
            try:
                conn, addr = self.sock.accept()
            except (BlockingIOError, InterruptedError):
                return
            except OSError as exc:
                if exc.errno in ACCEPT_SKIP_ERRNOS:
                    logger.info("[-] connection lost before accept: %s", exc)
                    continue
                if exc.errno in ACCEPT_EXHAUSTED_ERRNOS:
                    logger.error("[!] accept() failed, pending connections left queued: %s", exc)
                    return
                logger.error("[!] accept() on the listening socket failed: %s", exc)
                sys.exit(1)
            conn.setblocking(False)
            yield conn, addr

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        self.sock.close()
