from __future__ import annotations

import math

from .gacha_constants import EARTH_RADIUS_KM, SPEED_KMH
from .gacha_models import Coordinate


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """计算两个坐标间的大圆距离 / 2地点間の大円距離を計算する。"""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # 丸め誤差で 1 をわずかに超えることがある
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two lat/lon pairs in kilometers."""
    return haversine_km(Coordinate(lat1, lon1), Coordinate(lat2, lon2))


def estimate_minutes(distance: float, speed_kmh: float = SPEED_KMH) -> int:
    """根据距离估算所需分钟 / 距離から所要分数を見積もる（切り上げ）。"""
    if distance <= 0:
        return 0
    return math.ceil(distance / speed_kmh * 60)


def max_distance_km(minutes: float, speed_kmh: float = SPEED_KMH) -> float:
    """estimate_minutes の逆関数。分数から到達可能な直線距離を返す。"""
    if minutes <= 0:
        return 0.0
    return minutes / 60 * speed_kmh


def estimate_between(a: Coordinate, b: Coordinate, speed_kmh: float = SPEED_KMH) -> tuple[float, int]:
    """Return (distance_km, estimated_minutes) for a pair of coordinates."""
    dist = haversine_km(a, b)
    return dist, estimate_minutes(dist, speed_kmh)


__all__ = [
    "distance_km",
    "estimate_between",
    "estimate_minutes",
    "haversine_km",
    "max_distance_km",
]
