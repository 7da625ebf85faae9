import logging
import sys
from copy import copy

import click

LOG_FORMAT = "%(levelprefix)s %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: "cyan",
    logging.INFO: "green",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bright_red",
}


class ColourizedFormatter(logging.Formatter):
    """
    Prefixes each record with its padded level name, coloured when the stream
    is a terminal. A record carrying a "color_message" extra has that version
    of the message used instead, with the same arguments.
    """

    def __init__(self, fmt: str = LOG_FORMAT, use_colors: bool | None = None):
        if use_colors is None:
            use_colors = sys.stderr.isatty()
        self.use_colors = use_colors
        super().__init__(fmt)

    def formatMessage(self, record: logging.LogRecord) -> str:
        record = copy(record)
        levelname = record.levelname
        separator = " " * (8 - len(levelname))
        if self.use_colors:
            levelname = click.style(levelname, fg=LEVEL_COLORS.get(record.levelno))
            if "color_message" in record.__dict__:
                record.msg = record.__dict__["color_message"]
                record.message = record.getMessage()
        record.__dict__["levelprefix"] = levelname + ":" + separator
        return super().formatMessage(record)


def configure_logging(level: str = "info", use_colors: bool | None = None) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColourizedFormatter(use_colors=use_colors))
    root = logging.getLogger("epoll_echo")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False
