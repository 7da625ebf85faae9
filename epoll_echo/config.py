import enum
import ipaddress

DEFAULT_ADDR = "0.0.0.0"
DEFAULT_PORT = 9090

# Pending connections the kernel queues before accept().
BACKLOG = 16
# Events returned by one epoll wait. Larger batches mean fewer syscalls, smaller
# ones bound how long a busy batch keeps the rest of the loop waiting.
MAX_EVENTS = 32
# Server read size. Deliberately small so that chunking of longer lines is
# visible on the wire; size it to the MTU for anything real.
BUF_SIZE = 16
# Client line buffer, including room for a terminator.
MAX_LINE = 256


class WriteFailurePolicy(str, enum.Enum):
    """
    What the echo handler does when a write to a peer fails permanently.

    close: the connection is torn down once the current event is handled.
    keep-open: the failure is logged and the connection is left as it is, with
    no retry. Later reads on it still echo.
    """
    CLOSE = "close"
    KEEP_OPEN = "keep-open"


def parse_address(text: str) -> str:
    """Validate a dotted-decimal IPv4 address and return it normalised."""
    try:
        return str(ipaddress.IPv4Address(text))
    except ValueError as exc:
        raise ValueError(f"Cannot convert the address {text!r}") from exc


def parse_port(value) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Cannot convert the port number {value!r}") from exc
    if not 0 < port < 65536:
        raise ValueError(f"Cannot convert the port number {value!r}")
    return port


class Config:

    __slots__ = ("host", "port", "backlog", "max_events", "read_size", "write_failure_policy")

    def __init__(
            self,
            host: str = DEFAULT_ADDR,
            port: int = DEFAULT_PORT,
            backlog: int = BACKLOG,
            max_events: int = MAX_EVENTS,
            read_size: int = BUF_SIZE,
            write_failure_policy: WriteFailurePolicy = WriteFailurePolicy.CLOSE
    ):
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "backlog", backlog)
        object.__setattr__(self, "max_events", max_events)
        object.__setattr__(self, "read_size", read_size)
        object.__setattr__(self, "write_failure_policy", WriteFailurePolicy(write_failure_policy))

    def __setattr__(self, name, value):
        raise AttributeError(f"Config is immutable, cannot set {name!r}")

    def __delattr__(self, name):
        raise AttributeError(f"Config is immutable, cannot delete {name!r}")

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __repr__(self) -> str:
        return (
            f"Config(host={self.host!r}, port={self.port}, backlog={self.backlog}, "
            f"max_events={self.max_events}, read_size={self.read_size}, "
            f"write_failure_policy={self.write_failure_policy.value!r})"
        )
