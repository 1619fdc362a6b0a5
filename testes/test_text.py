import os
import sys
from datetime import datetime

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wordpress_migrate.utils.text import build_alias, map_langcode, sanitize_filename, to_timestamp


def test_map_langcode_prefixes():
    assert map_langcode("ar-SA") == "ar"
    assert map_langcode("english") == "en"
    assert map_langcode("  EN_us ") == "en"
    assert map_langcode("fr_FR") == "und"


def test_map_langcode_empty_is_none():
    assert map_langcode("") is None
    assert map_langcode(None) is None


def test_build_alias_plain_and_arabic():
    assert build_alias("hello-world", "en") == "/hello-world"
    assert build_alias("hello-world", "ar") == "/ar/hello-world"
    assert build_alias("hello-world", None) == "/hello-world"


def test_build_alias_trims_and_collapses_slashes():
    assert build_alias("/news//2021/", "und") == "/news/2021"
    assert build_alias("  //a///b  ", "ar") == "/ar/a/b"


def test_build_alias_skips_root():
    assert build_alias("", "en") is None
    assert build_alias("///", None) is None


def test_sanitize_filename():
    assert sanitize_filename("My Photo (final).jpg") == "My_Photo_final_.jpg"
    assert sanitize_filename("  spaced   out  ") == "spaced_out"
    assert sanitize_filename("صورة") == ""
    assert sanitize_filename("keep-this_name.v2") == "keep-this_name.v2"


def test_to_timestamp():
    assert to_timestamp("2021-05-01 10:00:00") == int(datetime(2021, 5, 1, 10, 0, 0).timestamp())
    assert to_timestamp(datetime(2020, 1, 1)) == int(datetime(2020, 1, 1).timestamp())
    assert to_timestamp("0000-00-00 00:00:00") is None
    assert to_timestamp("not a date") is None
    assert to_timestamp(None) is None
