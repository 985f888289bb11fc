from __future__ import annotations

from collections.abc import Callable

import pytest

from clients.heartrails_express import StationDirectoryError
from services.gacha_models import Station


def make_station(
    name: str,
    *,
    line: str = "テスト線",
    prefecture: str = "東京都",
    lat: float = 35.68,
    lon: float = 139.76,
    postal: str = "100-0005",
) -> Station:
    return Station(
        name=name,
        line=line,
        prefecture=prefecture,
        postal_code=postal,
        x=lon,
        y=lat,
    )


class FakeDirectory:
    """In-memory StationDirectory that records every lookup."""

    def __init__(
        self,
        *,
        lines: dict[str, list[str]] | None = None,
        stations_by_line: dict[str, list[Station]] | None = None,
        stations_by_name: dict[str, list[Station]] | None = None,
        fail_lines: bool = False,
        fail_names: bool = False,
        fail_on_line: str | None = None,
    ) -> None:
        self.lines = lines or {}
        self.stations_by_line = stations_by_line or {}
        self.stations_by_name = stations_by_name or {}
        self.fail_lines = fail_lines
        self.fail_names = fail_names
        self.fail_on_line = fail_on_line
        self.line_calls: list[str] = []
        self.station_line_calls: list[str] = []
        self.station_name_calls: list[str] = []

    def get_lines(self, prefecture: str) -> list[str]:
        self.line_calls.append(prefecture)
        if self.fail_lines:
            raise StationDirectoryError("getLines failed")
        return list(self.lines.get(prefecture, []))

    def get_stations(self, *, name: str | None = None, line: str | None = None) -> list[Station]:
        if name is not None:
            self.station_name_calls.append(name)
            if self.fail_names:
                raise StationDirectoryError("getStations(name) failed")
            return list(self.stations_by_name.get(name, []))
        self.station_line_calls.append(line)
        if self.fail_on_line is not None and line == self.fail_on_line:
            raise StationDirectoryError("getStations(line) failed")
        return list(self.stations_by_line.get(line, []))


@pytest.fixture
def station_factory() -> Callable[..., Station]:
    return make_station


@pytest.fixture
def directory_factory() -> Callable[..., FakeDirectory]:
    return FakeDirectory
