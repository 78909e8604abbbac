"""Console and log file output."""

import logging
from pathlib import Path

import click

LOGGER_NAME = "git_submodulize"

_COLORS = {
    logging.DEBUG: {"dim": True},
    logging.INFO: {},
    logging.WARNING: {"fg": "yellow"},
    logging.ERROR: {"fg": "red", "bold": True},
    logging.CRITICAL: {"fg": "red", "bold": True},
}


class ClickHandler(logging.Handler):
    """Writes records to stderr through click, colored by level."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            click.secho(message, err=True, **_COLORS.get(record.levelno, {}))
        except Exception:
            self.handleError(record)


def configure_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    """
    Send package log records to the console and, if given, to `log_file`.

    The log file is truncated on every call and always receives DEBUG
    records, including every git command run. The console shows INFO and
    up, or DEBUG when `verbose` is set.

    Calling it again replaces the handlers installed by a previous call.

    Example:
        configure_logging(Path("/tmp/git-submodulize.log"), verbose=True)

    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = ClickHandler(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
