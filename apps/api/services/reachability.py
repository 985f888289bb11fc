from __future__ import annotations

from collections.abc import Iterable

from .gacha_constants import DISTANCE_MARGIN_KM, SPEED_KMH, UNLIMITED_MINUTES
from .gacha_models import Coordinate, Region
from .geo_utils import haversine_km, max_distance_km
from .regions import load_regions


def reachability_radius_km(
    max_travel_minutes: int,
    *,
    speed_kmh: float = SPEED_KMH,
    margin_km: float = DISTANCE_MARGIN_KM,
) -> float:
    """时间预算对应的搜索半径 / 時間予算に対応する探索半径（余白込み）。"""
    return max_distance_km(max_travel_minutes, speed_kmh) + margin_km


def reachable_regions(
    departure: Coordinate | None,
    max_travel_minutes: int,
    regions: Iterable[Region] | None = None,
    *,
    speed_kmh: float = SPEED_KMH,
    margin_km: float = DISTANCE_MARGIN_KM,
) -> list[str]:
    """Names of the regions whose centroid lies inside the reachability radius.

    The filter degrades to a no-op (every region, in input order) when the
    budget is unlimited or the departure point is still unknown. The result
    only depends on its arguments, so callers can recompute it whenever the
    departure or the budget changes.
    """
    pool = list(regions) if regions is not None else list(load_regions())
    if departure is None or max_travel_minutes == UNLIMITED_MINUTES:
        return [region.name for region in pool]

    radius = reachability_radius_km(max_travel_minutes, speed_kmh=speed_kmh, margin_km=margin_km)
    return [
        region.name
        for region in pool
        if haversine_km(departure, region.centroid) <= radius
    ]


__all__ = ["reachability_radius_km", "reachable_regions"]
