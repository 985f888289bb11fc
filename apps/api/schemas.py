from __future__ import annotations

"""
Pydantic request/response schemas emitted by the FastAPI service.

These schemas wrap the sampler's dataclasses so that the frontend consumes
typed and well-defined JSON structures.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class CoordinateOut(BaseModel):
    lat: float
    lon: float


class StationOut(BaseModel):
    name: str
    line: str
    prefecture: str
    postal_code: str = Field("", description="Postal code as returned by the directory (e.g. 150-0001).")
    x: float = Field(..., description="Longitude.")
    y: float = Field(..., description="Latitude.")
    prev: Optional[str] = Field(default=None, description="Neighbouring station name on one side.")
    next: Optional[str] = Field(default=None, description="Neighbouring station name on the other side.")


class CandidateOut(StationOut):
    estimated_minutes: int = Field(..., description="Estimated travel minutes from the departure point.")
    distance_km: float = Field(..., description="Straight-line distance from the departure point.")


class GachaRequest(BaseModel):
    departure_station: str = Field(..., description="Departure station name typed by the user.")
    departure: Optional[CoordinateOut] = Field(
        default=None, description="Already-resolved departure coordinate, if any."
    )
    region: str = Field("全国", description="Region label: 全国, a prefecture, or a 東京都 sub-region.")
    line: str = Field("すべて", description="Line name, or すべて for any line.")
    max_minutes: int = Field(0, ge=0, description="Travel time budget in minutes; 0 means unlimited.")
    lines: Optional[List[str]] = Field(
        default=None, description="Explicit candidate line pool; looked up when omitted."
    )


class GachaResultOut(BaseModel):
    status: Literal[
        "found",
        "not_found",
        "departure_not_found",
        "no_line_data",
        "communication_error",
        "cancelled",
    ]
    message: str
    candidate: Optional[CandidateOut] = None
    attempts: int = 0
    limit: int = 0
    region: Optional[str] = Field(default=None, description="Prefecture drawn for a nationwide run.")
    departure: Optional[CoordinateOut] = None


class RegionsOut(BaseModel):
    reachable: List[str] = Field(..., description="Prefectures whose centroid is within reach.")
    selectable: List[str] = Field(..., description="Menu labels, with 東京都 split into sub-regions.")
    radius_km: Optional[float] = Field(
        default=None, description="Search radius used; null when the filter was a no-op."
    )
    codes: Dict[str, int] = Field(
        default_factory=dict, description="JIS prefecture code per reachable prefecture, for map colouring."
    )


class LinesOut(BaseModel):
    region: str
    lines: List[str]


class EstimateOut(BaseModel):
    distance_km: float
    estimated_minutes: int
