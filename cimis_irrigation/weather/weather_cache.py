import json
import os
from collections.abc import Callable
from datetime import date
from typing import Optional

from cimis_irrigation.exceptions import ParseError
from cimis_irrigation.utils.logger import get_logger
import cimis_irrigation.utils.time_utils as time_utils


FetchFunction = Callable[[date, date], dict]
ValidateFunction = Callable[[dict], object]


class WeatherCache:
    """
    Fetch-or-load file cache for raw weather documents, keyed by the inclusive
    start/end dates of the analysis window. A hit skips the network entirely.
    Only documents that passed validation are stored.
    """

    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir
        self.logger = get_logger("WeatherCache")

    def path_for(self, start_date: date, end_date: date) -> str:
        filename = f"cimis_{time_utils.to_api_str(start_date)}_{time_utils.to_api_str(end_date)}.json"
        return os.path.join(self.cache_dir, filename)

    def load_or_fetch(self, start_date: date, end_date: date, fetch: FetchFunction,
                      validate: Optional[ValidateFunction] = None) -> dict:
        """
        Returns the cached document for the window, or calls fetch(start_date, end_date) and caches the result.

        :param validate: called on a freshly fetched document before it is cached; raising keeps it out of the cache.
        :raises ParseError: if the cached file exists but is not valid JSON, or raised by validate.
        :raises FetchError: propagated from fetch.
        """
        path = self.path_for(start_date, end_date)
        if os.path.exists(path):
            self.logger.info(f"File for desired dates already exists, opening JSON file {path}")
            try:
                with open(path, "r") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                raise ParseError(f"Cached weather file {path} is corrupted: {e}") from e

        self.logger.info("File for desired dates does not exist, requesting data from CIMIS.")
        document = fetch(start_date, end_date)
        if validate is not None:
            validate(document)
        self._save(path, document)
        return document

    def _save(self, path: str, document: dict) -> None:
        tmp_path = f"{path}.tmp"
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(document, f)
            os.replace(tmp_path, path)
        except OSError as e:
            self.logger.warning(f"Failed to cache weather data to {path}: {e}")
            return
        self.logger.info(f"CIMIS data obtained and cached to {path}")
