from typing import TYPE_CHECKING

from ._types import SourceKind

if TYPE_CHECKING:
    from ._types import EventSource
    from .connection import Connection


class ServerState:
    """
    Registry of everything the multiplexer watches, keyed by fd.

    Only the dispatch thread touches it, so there is no locking.
    """
    def __init__(self):
        self.sources: dict[int, "EventSource"] = {}
        """
        Client connections only, a subset of sources. Kept separately so the
        count of live peers does not depend on how many special fds exist.
        """
        self.connections: dict[int, "Connection"] = {}
        self.total_connections = 0

    def add(self, source: "EventSource") -> None:
        fd = source.fileno()
        if fd in self.sources:
            raise KeyError(f"fd {fd} is already registered as {self.sources[fd].kind.value}")
        self.sources[fd] = source
        if source.kind is SourceKind.CONNECTION:
            self.connections[fd] = source
            self.total_connections += 1

    def get(self, fd: int) -> "EventSource | None":
        return self.sources.get(fd)

    def remove(self, fd: int) -> "EventSource | None":
        self.connections.pop(fd, None)
        return self.sources.pop(fd, None)

    def __len__(self) -> int:
        return len(self.sources)
