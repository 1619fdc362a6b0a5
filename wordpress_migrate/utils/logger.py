"""
Console and file logging for migration runs.

Every message is printed as ``[timestamp] LEVEL: message`` and appended to
``migration.log`` inside the reports directory, so that a run can be
followed live and reviewed afterwards.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Dict, Optional

LEVELS: Dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "SUCCESS": 25,
    "WARNING": 30,
    "ERROR": 40,
}


class MigrationLogger:
    """
    Small logger shared by all migration services.

    :param log_dir: Directory receiving ``migration.log``.  ``None``
        disables the file output.
    :param min_level: Messages below this level are dropped.
    :param echo: Whether to print messages to stdout.
    """

    def __init__(self, log_dir: Optional[str] = "reports/migration", *, min_level: str = "INFO", echo: bool = True) -> None:
        self.log_dir = log_dir
        self.min_level = LEVELS.get(min_level.upper(), LEVELS["INFO"])
        self.echo = echo

    @property
    def log_file(self) -> Optional[str]:
        if not self.log_dir:
            return None
        return os.path.join(self.log_dir, "migration.log")

    def log_message(self, message: str, level: str = "INFO") -> None:
        level = level.upper()
        if LEVELS.get(level, LEVELS["INFO"]) < self.min_level:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = f"[{timestamp}] {level}: {message}"
        if self.echo:
            print(log_entry)

        if self.log_file:
            os.makedirs(self.log_dir, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(log_entry + "\n")

    def debug(self, message: str) -> None:
        self.log_message(message, "DEBUG")

    def info(self, message: str) -> None:
        self.log_message(message, "INFO")

    def warning(self, message: str) -> None:
        self.log_message(message, "WARNING")

    def error(self, message: str) -> None:
        self.log_message(message, "ERROR")
