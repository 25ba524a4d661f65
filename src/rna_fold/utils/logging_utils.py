import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

# Every engine module logs below this name.
PACKAGE_LOGGER = "rna_fold"

# Directory for the automatic log file of `rna-fold -vv`.
DEFAULT_LOG_DIR = Path("var/log")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def timestamped_log_path(log_dir: Optional[Path] = None) -> Path:
    """
    Path of a fresh ``rna_fold_<YYYYmmdd_HHMMSS>.log`` file in `log_dir`.

    The directory is created if needed.
    """
    directory = DEFAULT_LOG_DIR if log_dir is None else log_dir
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{PACKAGE_LOGGER}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"


def setup_logger(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
    name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Send the records of logger `name` and its children to the console and,
    optionally, to a file.

    Handlers from an earlier call are closed and replaced, so the CLI can be
    driven repeatedly in one process without duplicated lines.

    Parameters
    ----------
    level : int
        Level of the logger and of both handlers.
    log_file : Path, optional
        File receiving the same records; parent directories are created.
    stream : TextIO, optional
        Console stream, stderr by default so that results on stdout stay clean.
    name : str
        Logger to configure; the whole package by default.

    Returns
    -------
    logging.Logger
        The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler(stream if stream is not None else sys.stderr)]
    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger
