import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class StderrHandler(logging.StreamHandler):
    """The handler `setup_logging` installs; one per package logger."""

    def __init__(self):
        super().__init__(sys.stderr)
        self.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Attach a stderr handler to the package logger.

    Report output goes to stdout, so diagnostics are kept on stderr and
    propagation is disabled to avoid duplicate lines under a root handler.
    """
    logger = logging.getLogger("patchhelper")
    # repeated calls (one per CLI invocation) replace the previous handler
    for existing in list(logger.handlers):
        if isinstance(existing, StderrHandler):
            logger.removeHandler(existing)
    logger.addHandler(StderrHandler())
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
