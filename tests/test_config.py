import pytest

from epoll_echo.config import (
    BACKLOG,
    BUF_SIZE,
    DEFAULT_ADDR,
    DEFAULT_PORT,
    MAX_EVENTS,
    MAX_LINE,
    Config,
    WriteFailurePolicy,
    parse_address,
    parse_port,
)


def test_defaults():
    config = Config()
    assert config.address == (DEFAULT_ADDR, DEFAULT_PORT) == ("0.0.0.0", 9090)
    assert config.backlog == BACKLOG == 16
    assert config.max_events == MAX_EVENTS == 32
    assert config.read_size == BUF_SIZE == 16
    assert MAX_LINE == 256
    assert config.write_failure_policy is WriteFailurePolicy.CLOSE


def test_config_is_immutable():
    config = Config(host="127.0.0.1", port=8000)
    with pytest.raises(AttributeError):
        config.port = 9000
    with pytest.raises(AttributeError):
        del config.host
    assert config.port == 8000


def test_policy_accepts_its_string_value():
    config = Config(write_failure_policy="keep-open")
    assert config.write_failure_policy is WriteFailurePolicy.KEEP_OPEN
    with pytest.raises(ValueError):
        Config(write_failure_policy="retry")


@pytest.mark.parametrize("text", ["127.0.0.1", "0.0.0.0", "10.1.2.3"])
def test_parse_address_accepts_dotted_ipv4(text):
    assert parse_address(text) == text


@pytest.mark.parametrize("text", ["256.0.0.1", "localhost", "", "::1", "1.2.3"])
def test_parse_address_rejects_everything_else(text):
    with pytest.raises(ValueError, match="Cannot convert the address"):
        parse_address(text)


def test_parse_port():
    assert parse_port("9090") == 9090
    assert parse_port(1) == 1
    for bad in ("0", "abc", "", "70000", None):
        with pytest.raises(ValueError, match="Cannot convert the port number"):
            parse_port(bad)
