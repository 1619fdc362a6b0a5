"""
Extractors for the WordPress database.

This subpackage provides the connection to the WordPress MySQL database
and the read-only queries that turn its tables into typed legacy records
(users, posts, attachments, terms and comments) with their meta data.
"""

from .connection import WordPressConnection
from .wordpress_extractor import WordPressDataExtractor

__all__ = ["WordPressConnection", "WordPressDataExtractor"]
