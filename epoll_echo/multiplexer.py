"""
Thin wrapper over select.epoll.

Every registration is edge-triggered: a notification fires on the transition to
ready, not while an fd stays ready. Whoever handles an event must keep reading
(or accepting) until the call reports BlockingIOError, otherwise the data that is
left behind is never signalled again.
"""
import logging
import select
import sys

from ._types import EDGE, ReadinessEvent

logger = logging.getLogger(__name__)


class Multiplexer:

    def __init__(self):
        try:
            self._epoll = select.epoll()
        except OSError as exc:
            logger.error("[!] Cannot create epoll file descriptor: %s", exc)
            sys.exit(1)
        self._registered: set[int] = set()

    def register(self, fd: int, mask: int) -> None:
        """
        Failing here means the process is out of descriptors or memory, or the
        fd was already registered. Neither is something the loop can recover from.
        """
        try:
            self._epoll.register(fd, mask | EDGE)
        except OSError as exc:
            logger.error("[!] epoll register failed for fd %d: %s", fd, exc)
            sys.exit(1)
        self._registered.add(fd)

    def deregister(self, fd: int) -> None:
        if fd not in self._registered:
            return
        self._registered.discard(fd)
        try:
            self._epoll.unregister(fd)
        except OSError as exc:
            # closing an fd removes it from the interest list on its own
            logger.debug("epoll unregister for fd %d: %s", fd, exc)

    def wait(self, max_events: int, timeout: float | None = None) -> list[ReadinessEvent]:
        return [ReadinessEvent(fd, events) for fd, events in self._epoll.poll(timeout, max_events)]

    def close(self) -> None:
        self._registered.clear()
        self._epoll.close()

    @property
    def closed(self) -> bool:
        return self._epoll.closed

    def __contains__(self, fd: int) -> bool:
        return fd in self._registered

    def __len__(self) -> int:
        return len(self._registered)
