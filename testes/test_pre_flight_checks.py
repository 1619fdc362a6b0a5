import os
import sys
from unittest import mock

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from fakes import FakeResponse, quiet_logger
from wordpress_migrate.utils.errors import PreFlightCheckError
from wordpress_migrate.utils.pre_flight_checks import run_drupal_pre_flight_checks

CONFIG = {"drupal": {"base_url": "https://drupal.example.com/", "username": "admin", "password": "pw"}}


def test_checks_pass():
    http_get = mock.Mock(return_value=FakeResponse(b"{}"))

    run_drupal_pre_flight_checks(CONFIG, quiet_logger(), http_get=http_get)

    urls = [c.args[0] for c in http_get.call_args_list]
    assert urls == ["https://drupal.example.com/jsonapi", "https://drupal.example.com/jsonapi/user/user"]
    assert http_get.call_args.kwargs["auth"] == ("admin", "pw")


def test_missing_base_url():
    with pytest.raises(PreFlightCheckError, match="base URL"):
        run_drupal_pre_flight_checks({"drupal": {}}, quiet_logger(), http_get=mock.Mock())


def test_jsonapi_not_enabled():
    http_get = mock.Mock(return_value=FakeResponse(status_code=404))
    with pytest.raises(PreFlightCheckError, match="JSON:API module is not enabled"):
        run_drupal_pre_flight_checks(CONFIG, quiet_logger(), http_get=http_get)


@pytest.mark.parametrize("status", [401, 403])
def test_invalid_credentials(status):
    http_get = mock.Mock(side_effect=[FakeResponse(b"{}"), FakeResponse(status_code=status)])
    with pytest.raises(PreFlightCheckError, match="credentials"):
        run_drupal_pre_flight_checks(CONFIG, quiet_logger(), http_get=http_get)


def test_unreachable_site():
    http_get = mock.Mock(side_effect=requests.ConnectionError("connection refused"))
    with pytest.raises(PreFlightCheckError, match="Network error"):
        run_drupal_pre_flight_checks(CONFIG, quiet_logger(), http_get=http_get)
