#!/usr/bin/env python3
"""
UTF-8-safe logging setup for xrpicker front ends.

Library modules only call logging.getLogger("xrpicker"); a front end calls
setup_logger() once to decide where those records go.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from ..config import APP_NAME, LOG_LEVEL

# Terse for the terminal, where runtime listings are the main output
CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class UTF8StreamHandler(logging.StreamHandler):
    """Stream handler that never fails on characters the console can't encode."""

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__(stream if stream is not None else sys.stderr)

    def emit(self, record):
        try:
            msg = self.format(record) + self.terminator
            try:
                self.stream.write(msg)
            except UnicodeEncodeError:
                # Legacy console code pages (e.g. cp1252) can't show the path arrows
                encoding = getattr(self.stream, "encoding", None) or "ascii"
                self.stream.write(msg.encode(encoding, errors="replace").decode(encoding))
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def setup_logger(name: str = APP_NAME,
                 log_level: str = LOG_LEVEL,
                 log_file: Optional[Union[str, Path]] = None,
                 stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Route the package logger to the console (and optionally a file).

    Safe to call repeatedly: handlers from an earlier call are closed and
    replaced, so records are never printed twice. Unknown level names fall
    back to INFO.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = UTF8StreamHandler(stream)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8', errors='replace')
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger
