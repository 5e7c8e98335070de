import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Libraries that log per datagram or per callback at INFO/DEBUG
NOISY_LOGGERS = ("pythonosc", "asyncio")


def setup_logging(level: str = None, log_file: str = None) -> logging.Logger:
    """Configure the ``playlink`` logger tree.

    Level comes from the argument, then ``PLAYLINK_LOG_LEVEL``, then
    INFO. Records go to stderr, so the controller's status line on
    stdout stays readable, and additionally to ``log_file`` if given.
    Calling it again replaces the previous handlers.
    """
    name = level or os.environ.get("PLAYLINK_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, name.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logger = logging.getLogger("playlink")
    logger.setLevel(numeric_level)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
