from typing import Any, Callable, Dict, Optional

import requests

from .errors import PreFlightCheckError
from .logger import MigrationLogger


def run_drupal_pre_flight_checks(
    config: Dict[str, Any],
    logger: Optional[MigrationLogger] = None,
    *,
    http_get: Callable[..., requests.Response] = requests.get,
) -> None:
    """
    Verifies that the Drupal site is reachable and ready for the migration.

    Args:
        config: The application configuration dictionary.
        logger: Optional logger for progress messages.
        http_get: Callable used for the requests, ``requests.get`` by default.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    logger = logger or MigrationLogger(None)
    logger.info("Running pre-flight checks...")

    drupal = config.get("drupal", {})
    base_url = (drupal.get("base_url") or "").rstrip("/")
    if not base_url:
        raise PreFlightCheckError("Drupal base URL not found in the configuration file.")

    auth = (drupal["username"], drupal.get("password") or "") if drupal.get("username") else None
    headers = {"Accept": "application/vnd.api+json"}

    # Check 1: JSON:API module enabled
    try:
        response = http_get(f"{base_url}/jsonapi", headers=headers, auth=auth, timeout=10)
        response.raise_for_status()
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code == 404:
            raise PreFlightCheckError("The JSON:API module is not enabled on the Drupal site.")
        raise PreFlightCheckError(f"Unexpected error while checking the JSON:API endpoint: {e}")
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to the Drupal site: {e}")

    # Check 2: credentials can read users
    try:
        response = http_get(
            f"{base_url}/jsonapi/user/user",
            headers=headers,
            auth=auth,
            params={"page[limit]": 1},
            timeout=10,
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code in (401, 403):
            raise PreFlightCheckError("The Drupal credentials are invalid or lack permission to manage users.")
        raise PreFlightCheckError(f"Unexpected error while checking the Drupal user API: {e}")
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to the Drupal user API: {e}")

    logger.info("Pre-flight checks passed successfully.")
