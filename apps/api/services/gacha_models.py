from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .gacha_constants import ANY_LINE, UNLIMITED_MINUTES

if TYPE_CHECKING:
    from .regions import RegionFilter


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class Station:
    name: str
    line: str
    prefecture: str
    postal_code: str
    x: float  # 経度
    y: float  # 緯度
    prev_station_name: str | None = None
    next_station_name: str | None = None

    @property
    def coordinate(self) -> Coordinate:
        """站点坐标 / 駅の座標を返す。"""
        return Coordinate(lat=self.y, lon=self.x)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "line": self.line,
            "prefecture": self.prefecture,
            "postal_code": self.postal_code,
            "x": self.x,
            "y": self.y,
            "prev": self.prev_station_name,
            "next": self.next_station_name,
        }


@dataclass(frozen=True)
class Candidate:
    station: Station
    estimated_minutes: int
    distance_km: float

    @property
    def name(self) -> str:
        return self.station.name

    @property
    def line(self) -> str:
        return self.station.line

    @property
    def prefecture(self) -> str:
        return self.station.prefecture

    def to_dict(self) -> dict:
        """把候选转换为API字典 / 候補をAPI用の辞書に変換する。"""
        payload = self.station.to_dict()
        payload["estimated_minutes"] = self.estimated_minutes
        payload["distance_km"] = round(self.distance_km, 2)
        return payload


@dataclass(frozen=True)
class Region:
    code: int
    name: str
    lat: float
    lon: float

    @property
    def centroid(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


@dataclass(frozen=True)
class SearchConstraints:
    departure_station: str
    region_filter: RegionFilter
    line_filter: str = ANY_LINE
    max_travel_minutes: int = UNLIMITED_MINUTES
    candidate_line_pool: tuple[str, ...] = field(default_factory=tuple)
    departure: Coordinate | None = None

    def __post_init__(self) -> None:
        if self.max_travel_minutes < 0:
            raise ValueError("max_travel_minutes must be >= 0")
        # frozen なので object.__setattr__ で正規化する
        object.__setattr__(self, "candidate_line_pool", tuple(self.candidate_line_pool))

    @property
    def unlimited(self) -> bool:
        return self.max_travel_minutes == UNLIMITED_MINUTES

    @property
    def any_line(self) -> bool:
        return not self.line_filter or self.line_filter == ANY_LINE


class GachaStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    DEPARTURE_NOT_FOUND = "departure_not_found"
    NO_LINE_DATA = "no_line_data"
    COMMUNICATION_ERROR = "communication_error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GachaResult:
    status: GachaStatus
    candidate: Candidate | None = None
    attempts: int = 0
    limit: int = 0
    message: str = ""
    region: str | None = None
    departure: Coordinate | None = None

    @property
    def found(self) -> bool:
        return self.status is GachaStatus.FOUND

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "candidate": self.candidate.to_dict() if self.candidate else None,
            "attempts": self.attempts,
            "limit": self.limit,
            "region": self.region,
            "departure": self.departure.to_dict() if self.departure else None,
        }


__all__ = [
    "Candidate",
    "Coordinate",
    "GachaResult",
    "GachaStatus",
    "Region",
    "SearchConstraints",
    "Station",
]
