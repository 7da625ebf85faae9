import time

import pytest
from conftest import free_port

from epoll_echo.client import EchoClient
from epoll_echo.config import MAX_LINE, Config


@pytest.fixture
def client(echo_server):
    host, port = echo_server.address
    echo_client = EchoClient(Config(host=host, port=port), reply_timeout=0.5)
    echo_client.connect()
    yield echo_client
    echo_client.close()


def test_send_line_returns_echo(client):
    assert b"".join(client.send_line("hello")) == b"hello"


def test_send_line_time_token(client):
    before = time.strftime("%X").encode()
    reply = b"".join(client.send_line("%time%"))
    assert reply in {before, time.strftime("%X").encode()}


def test_long_line_is_truncated_to_line_buffer(client):
    reply = b"".join(client.send_line("y" * 400))
    assert reply == b"y" * (MAX_LINE - 1)


def test_run_prints_echoes_until_exit(client, capsys):
    lines = iter(["hello", "exit", "never sent"])
    client.run(prompt=lambda: next(lines))
    out = capsys.readouterr().out
    assert "echo: hello" in out
    assert "never sent" not in out
    assert client.sock is None


def test_run_stops_on_end_of_input(client):
    def prompt():
        raise EOFError

    client.run(prompt=prompt)
    assert client.sock is None


def test_connect_refused():
    echo_client = EchoClient(Config(host="127.0.0.1", port=free_port()))
    with pytest.raises(ConnectionRefusedError):
        echo_client.connect()
    assert echo_client.sock is None
