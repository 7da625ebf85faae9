import logging
import sys

import click

from .client import EchoClient
from .config import DEFAULT_ADDR, DEFAULT_PORT, Config, WriteFailurePolicy, parse_address, parse_port
from .logs import configure_logging
from .server import Server
from .util import format_addr

logger = logging.getLogger(__name__)

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def _address_callback(ctx, param, value):
    try:
        return parse_address(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _port_callback(ctx, param, value):
    try:
        return parse_port(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-s", "server_role", is_flag=True, help="Run as the echo server (default).")
@click.option("-c", "client_role", is_flag=True, help="Run as the interactive client.")
@click.option("-a", "--address", default=DEFAULT_ADDR, show_default=True, callback=_address_callback,
              help="IPv4 address to listen on, or to connect to.")
@click.option("-p", "--port", default=str(DEFAULT_PORT), show_default=True, callback=_port_callback,
              help="TCP port.")
@click.option("--write-failure-policy", type=click.Choice([p.value for p in WriteFailurePolicy]),
              default=WriteFailurePolicy.CLOSE.value, show_default=True,
              help="What to do with a connection whose write fails permanently.")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default="info", show_default=True)
def main(server_role: bool, client_role: bool, address: str, port: int, write_failure_policy: str, log_level: str) -> None:
    configure_logging(log_level)
    config = Config(host=address, port=port, write_failure_policy=write_failure_policy)
    if client_role:
        run_client(config)
    else:
        run_server(config)


def run_server(config: Config) -> None:
    server = Server(config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Shutting down server!")
        server.shutdown()


def run_client(config: Config) -> None:
    client = EchoClient(config)
    try:
        client.connect()
    except OSError as exc:
        logger.error("cannot connect to the server at %s: %s", format_addr(config.address), exc)
        sys.exit(1)
    try:
        client.run()
    except KeyboardInterrupt:
        client.close()
