import logging
import os
import sys
from typing import Optional

from chatsync.core.config import settings


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    level_name = (level or settings.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else settings.LOG_FILE

    # Drop previous handlers so reconfiguring does not duplicate output
    root = logging.getLogger()
    if root.handlers:
        root.handlers.clear()

    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    formatter = logging.Formatter(fmt)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level_name)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level_name)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level_name)
