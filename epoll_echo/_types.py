import enum
import select
from typing import NamedTuple, Protocol

READABLE = select.EPOLLIN
EDGE = select.EPOLLET
PEER_CLOSED = select.EPOLLRDHUP
HANGUP = select.EPOLLHUP

LISTENER_INTEREST = READABLE | EDGE
CONTROL_INTEREST = READABLE | EDGE
WAKEUP_INTEREST = READABLE | EDGE
CONNECTION_INTEREST = READABLE | EDGE | PEER_CLOSED | HANGUP
CLOSING_BITS = PEER_CLOSED | HANGUP


class ReadinessEvent(NamedTuple):
    fd: int
    events: int

    @property
    def readable(self) -> bool:
        return bool(self.events & READABLE)

    @property
    def closing(self) -> bool:
        return bool(self.events & CLOSING_BITS)


class SourceKind(enum.Enum):
    LISTENER = "listener"
    CONTROL = "control"
    CONNECTION = "connection"
    WAKEUP = "wakeup"


class EventSource(Protocol):
    """Anything registered with the multiplexer: tagged so dispatch never compares raw fds."""
    kind: SourceKind
    closing: bool

    def fileno(self) -> int: ...

    def close(self) -> None: ...
