"""
Interactive line client.

Connects once, sends each entered line without its newline and prints what
comes back. The server echoes in small chunks, so a reply can arrive in several
pieces; the client keeps reading until it has at least as many bytes as it sent,
the server closes, or nothing arrives for reply_timeout seconds.
"""
import logging
import socket
from typing import Callable

import click

from .config import MAX_LINE, Config
from .util import format_addr

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"


class EchoClient:

    def __init__(self, config: Config, reply_timeout: float = 1.0):
        self.config = config
        self.reply_timeout = reply_timeout
        self.sock: socket.socket | None = None
        self.peer_closed = False

    def connect(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.connect(self.config.address)
        except OSError:
            sock.close()
            raise
        sock.settimeout(self.reply_timeout)
        self.sock = sock
        logger.info("Connected to %s", format_addr(self.config.address))

    def send_line(self, line: str) -> list[bytes]:
        """Send one line and return the reply chunks as they were received."""
        data = line.encode()[:MAX_LINE - 1]
        self.sock.sendall(data)

        chunks = []
        remaining = len(data)
        while remaining > 0:
            try:
                chunk = self.sock.recv(MAX_LINE)
            except socket.timeout:
                break
            if not chunk:
                self.peer_closed = True
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return chunks

    def run(self, prompt: Callable[[], str] | None = None) -> None:
        prompt = prompt or _prompt
        try:
            while True:
                try:
                    line = prompt()
                except (EOFError, click.Abort):
                    break
                if line == EXIT_COMMAND:
                    break
                for chunk in self.send_line(line):
                    click.echo(f"echo: {chunk.decode(errors='replace')}")
                if self.peer_closed:
                    click.echo("server closed the connection", err=True)
                    break
        finally:
            self.close()

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None


def _prompt() -> str:
    return click.prompt("input", default="", show_default=False, prompt_suffix=": ")
