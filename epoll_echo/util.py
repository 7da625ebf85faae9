import socket


def get_local_addr(sock: socket.socket) -> tuple[str, int] | None:
    try:
        info = sock.getsockname()
    except OSError:
        return None
    return (str(info[0]), int(info[1])) if isinstance(info, tuple) and len(info) == 2 else None


def get_remote_addr(sock: socket.socket) -> tuple[str, int] | None:
    try:
        info = sock.getpeername()
    except OSError:
        return None
    return (str(info[0]), int(info[1])) if isinstance(info, tuple) and len(info) == 2 else None


def format_addr(addr: tuple[str, int] | None) -> str:
    if addr is None:
        return "unknown"
    return "%s:%d" % addr
