from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://express.heartrails.com"
JSON_ENDPOINT = "/api/json"
DEFAULT_TIMEOUT_SECONDS = 10.0
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}
_DEFAULT_HEADERS = {"User-Agent": "destination-gacha/0.1"}


class StationDirectoryError(RuntimeError):
    """Raised when the station directory cannot be reached or returns garbage."""


def _join_url(base: str, path: str) -> str:
    return f"{base.rstrip('/')}{path}"


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class HeartRailsExpressClient:
    """Thin wrapper around the HeartRails Express station API.

    "No match" answers come back as empty lists. Anything that prevents a
    usable answer (transport errors, HTTP errors, non-JSON bodies) raises
    StationDirectoryError. The caller is responsible for interpreting the
    station records.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = 0,
        retry_backoff: float = 0.6,
    ) -> None:
        self._base_url = base_url
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff

    def fetch_lines(self, prefecture: str) -> list[str]:
        """Line names serving a prefecture."""
        payload = self._request_json({"method": "getLines", "prefecture": prefecture})
        return [str(line) for line in _as_list(payload.get("line")) if line]

    def fetch_stations(
        self, *, name: str | None = None, line: str | None = None
    ) -> list[dict[str, Any]]:
        """Raw station records matching a name or served by a line."""
        if (name is None) == (line is None):
            raise ValueError("exactly one of name or line is required")
        params: dict[str, Any] = {"method": "getStations"}
        if name is not None:
            params["name"] = name
        else:
            params["line"] = line
        payload = self._request_json(params)
        return _as_list(payload.get("station"))

    def _request_json(self, params: dict[str, Any]) -> dict[str, Any]:
        """GET and return the `response` object; {} when the API reports no match."""
        url = _join_url(self._base_url, JSON_ENDPOINT)
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.get(
                    url, params=params, timeout=self._timeout, headers=_DEFAULT_HEADERS
                )
            except requests.RequestException as exc:
                logger.warning("Station directory request failed (%s): %s", params.get("method"), exc)
                raise StationDirectoryError(f"request failed: {exc}") from exc

            if response.status_code in RETRYABLE_STATUSES and attempt < self._max_retries:
                sleep_for = self._retry_backoff * (2**attempt)
                logger.debug(
                    "Station directory returned %s; retrying in %.2fs",
                    response.status_code,
                    sleep_for,
                )
                time.sleep(sleep_for)
                continue
            if response.status_code != 200:
                logger.warning(
                    "Station directory request failed with status %s: %s",
                    response.status_code,
                    response.text[:200],
                )
                raise StationDirectoryError(f"unexpected status {response.status_code}")

            try:
                data = response.json()
            except ValueError as exc:
                raise StationDirectoryError("station directory returned non-JSON body") from exc
            if not isinstance(data, dict) or not isinstance(data.get("response"), dict):
                raise StationDirectoryError(f"unexpected payload type: {type(data).__name__}")

            body = data["response"]
            if body.get("error"):
                # 該当なしも error で返ってくる
                logger.debug("Station directory reported no match: %s", body.get("error"))
                return {}
            return body
        raise StationDirectoryError("station directory retries exhausted")


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "HeartRailsExpressClient", "StationDirectoryError"]
