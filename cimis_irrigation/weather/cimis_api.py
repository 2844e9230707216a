from datetime import date

import requests

from cimis_irrigation.exceptions import FetchError
from cimis_irrigation.utils.logger import get_logger
import cimis_irrigation.utils.time_utils as time_utils


DEFAULT_API_URL = "https://et.water.ca.gov/api/data"
ENGLISH_UNITS = "E"     # inches

logger = get_logger("cimis_api")


def perform_api_call(url: str, params: dict, timeout: float) -> dict:
    """Performs a GET call and returns the decoded JSON body."""
    try:
        response = requests.get(url, params=params, timeout=timeout, headers={"Accept": "application/json"})
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Unable to request data from {url}: {e}") from e

    if response.status_code != 200:
        raise FetchError(f"Failed to fetch API data: {response.status_code} - {response.text[:200]}")

    try:
        return response.json()
    except ValueError as e:
        raise FetchError(f"Response from {url} is not valid JSON: {e}") from e


def fetch_weather(station_id: str, api_key: str, start_date: date, end_date: date,
                  url: str = DEFAULT_API_URL, timeout: float = 30.0) -> dict:
    """
    Fetches daily CIMIS records for one station over an inclusive date range.

    :raises FetchError: on network failure, non-200 status or a non-JSON body.
    """
    params = {
        "appKey": api_key,
        "targets": station_id,
        "startDate": time_utils.to_api_str(start_date),
        "endDate": time_utils.to_api_str(end_date),
        "unitOfMeasure": ENGLISH_UNITS,
    }

    safe_params = hide_confidential_params(params, ["appKey"])
    logger.debug(f"Performing API call to {url} with params: {safe_params}")
    return perform_api_call(url, params, timeout)


def hide_confidential_params(params: dict, keys_to_hide: list[str]) -> dict:
    """Returns a copy of the params dictionary with specified keys hidden."""
    safe_params = params.copy()
    for key in keys_to_hide:
        if key in safe_params:
            safe_params[key] = "***"
    return safe_params
