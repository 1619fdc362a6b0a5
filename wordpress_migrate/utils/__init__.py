"""
Utility helpers used by the migration tool.

This subpackage exposes the migration logger, structured error reporting,
pre-flight checks for the Drupal site and the slug/language helpers.
"""

from .errors import ERRORS, report_error, report_ok
from .logger import MigrationLogger

__all__ = ["ERRORS", "report_error", "report_ok", "MigrationLogger"]
