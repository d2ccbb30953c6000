"""Backend client for the valuation dataset."""

from typing import Optional

import requests

from valuation_chart.chart.records import normalize_records
from valuation_chart.core.logger import get_logger
from valuation_chart.core.response import ApiResponse

logger = get_logger("chart.fetcher")


class DatasetFetcher:
    """Reads ``GET {api_origin}/api/?symbol=...&useCache=...``.

    Every outcome is wrapped in an ``ApiResponse``; nothing is retried.
    """

    def __init__(
        self,
        api_origin: str = "http://127.0.0.1:5000",
        symbol: str = "510050",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_origin = api_origin.rstrip("/")
        self.symbol = symbol
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.api_origin}/api/"

    def params(self, use_cache: bool) -> dict:
        return {"symbol": self.symbol, "useCache": "true" if use_cache else "false"}

    def fetch(self, use_cache: bool) -> ApiResponse:
        logger.info(f"Fetching {self.symbol} useCache={use_cache}")
        try:
            response = self.session.get(
                self.url, params=self.params(use_cache), timeout=self.timeout
            )
            response.raise_for_status()
            records = normalize_records(response.json())
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching data: {e}")
            return ApiResponse.error(f"Network error: {e}")
        except ValueError as e:
            # also covers JSON decode errors raised by response.json()
            logger.error(f"Error fetching data: {e}")
            return ApiResponse.error(f"Malformed response: {e}")
        if not records:
            return ApiResponse.warning(data=[], message="Backend returned no records")
        return ApiResponse.success(data=records)
