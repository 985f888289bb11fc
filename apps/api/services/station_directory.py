from __future__ import annotations

import logging
from typing import Any, Protocol

from clients.heartrails_express import HeartRailsExpressClient, StationDirectoryError

from .gacha_models import Station

logger = logging.getLogger(__name__)


class StationDirectory(Protocol):
    """Station lookups the sampler depends on."""

    def get_lines(self, prefecture: str) -> list[str]: ...

    def get_stations(self, *, name: str | None = None, line: str | None = None) -> list[Station]: ...


def _optional_name(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_station(raw: Any) -> Station:
    """把API返回的站点记录转换为Station / APIの駅レコードをStationに変換する。"""
    if not isinstance(raw, dict):
        raise StationDirectoryError(f"unexpected station record: {raw!r}")
    try:
        x = float(raw["x"])
        y = float(raw["y"])
    except (KeyError, TypeError, ValueError) as exc:
        raise StationDirectoryError(f"station record without coordinates: {raw!r}") from exc
    return Station(
        name=str(raw.get("name") or ""),
        line=str(raw.get("line") or ""),
        prefecture=str(raw.get("prefecture") or ""),
        postal_code=str(raw.get("postal") or ""),
        x=x,
        y=y,
        prev_station_name=_optional_name(raw.get("prev")),
        next_station_name=_optional_name(raw.get("next")),
    )


class HeartRailsStationDirectory:
    """StationDirectory backed by the HeartRails Express client."""

    def __init__(self, client: HeartRailsExpressClient | None = None) -> None:
        self._client = client or HeartRailsExpressClient()

    def get_lines(self, prefecture: str) -> list[str]:
        return self._client.fetch_lines(prefecture)

    def get_stations(self, *, name: str | None = None, line: str | None = None) -> list[Station]:
        records = self._client.fetch_stations(name=name, line=line)
        stations = [parse_station(raw) for raw in records]
        logger.debug("Fetched %d stations (name=%s, line=%s)", len(stations), name, line)
        return stations


__all__ = [
    "HeartRailsStationDirectory",
    "StationDirectory",
    "StationDirectoryError",
    "parse_station",
]
