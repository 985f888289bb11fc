import random
import threading

import pytest

from services import GachaService
from services.gacha_constants import (
    ANY_LINE,
    MESSAGE_COMMUNICATION_ERROR,
    MESSAGE_DEPARTURE_NOT_FOUND,
    MESSAGE_NO_LINE_DATA,
    MESSAGE_NOT_FOUND,
    NATIONWIDE,
)
from services.gacha_models import Coordinate, GachaStatus
from services.line_catalog import LineCatalog
from services.regions import RegionKind

DEPARTURE = Coordinate(35.68, 139.76)
NEAR = {"lat": 35.70, "lon": 139.77}


@pytest.fixture
def service_factory(directory_factory):
    def build(directory=None, catalog=None):
        return GachaService(
            directory or directory_factory(),
            catalog=catalog or LineCatalog(),
            rng=random.Random(3),
            max_attempts=100,
        )

    return build


def test_build_constraints_prefers_catalog(service_factory, directory_factory) -> None:
    directory = directory_factory(lines={"大阪府": ["live線"]})
    service = service_factory(directory, LineCatalog({"大阪府": ("御堂筋線", "大阪環状線")}))
    constraints = service.build_constraints("梅田", region="大阪府")
    assert constraints.candidate_line_pool == ("御堂筋線", "大阪環状線")
    assert directory.line_calls == []


def test_build_constraints_falls_back_to_live_lines(service_factory, directory_factory) -> None:
    directory = directory_factory(lines={"東京都": ["山手線", "中央線"]})
    service = service_factory(directory)
    constraints = service.build_constraints("東京", region="東京都(23区外)")
    assert constraints.region_filter.kind is RegionKind.CAPITAL_OUTER
    assert constraints.candidate_line_pool == ("山手線", "中央線")
    assert directory.line_calls == ["東京都"]


def test_build_constraints_with_explicit_line(service_factory, directory_factory) -> None:
    directory = directory_factory()
    constraints = service_factory(directory).build_constraints("東京", region="東京都", line="山手線")
    assert constraints.candidate_line_pool == ("山手線",)
    assert directory.line_calls == []


def test_nationwide_constraints_ignore_line_choice(service_factory) -> None:
    constraints = service_factory().build_constraints("東京", region=NATIONWIDE, line="山手線")
    assert constraints.line_filter == ANY_LINE
    assert constraints.candidate_line_pool == ()


def test_build_constraints_rejects_unknown_region(service_factory) -> None:
    with pytest.raises(ValueError):
        service_factory().build_constraints("東京", region="ムー大陸")


def test_play_found(service_factory, directory_factory, station_factory) -> None:
    directory = directory_factory(
        stations_by_name={"東京": [station_factory("東京", lat=35.68, lon=139.76)]},
        stations_by_line={"山手線": [station_factory("神田", line="山手線", **NEAR)]},
    )
    result = service_factory(directory).play(
        "東京", region="東京都", line="山手線", max_travel_minutes=30
    )
    assert result.status is GachaStatus.FOUND
    assert result.candidate.name == "神田"
    assert result.departure == DEPARTURE
    payload = result.to_dict()
    assert payload["status"] == "found"
    assert payload["candidate"]["estimated_minutes"] == result.candidate.estimated_minutes


@pytest.mark.parametrize(
    ("kwargs", "status", "message"),
    [
        ({"departure": None}, GachaStatus.DEPARTURE_NOT_FOUND, MESSAGE_DEPARTURE_NOT_FOUND),
        ({"departure": DEPARTURE, "line_pool": []}, GachaStatus.NO_LINE_DATA, MESSAGE_NO_LINE_DATA),
        ({"departure": DEPARTURE, "line_pool": ["A"]}, GachaStatus.NOT_FOUND, MESSAGE_NOT_FOUND),
    ],
)
def test_play_folds_outcomes_into_results(service_factory, kwargs, status, message) -> None:
    result = service_factory().play("どこでもない駅", region="東京都", max_travel_minutes=30, **kwargs)
    assert result.status is status
    assert result.message == message
    assert result.candidate is None


def test_play_reports_communication_failure_while_building_pool(
    service_factory, directory_factory
) -> None:
    directory = directory_factory(fail_lines=True)
    result = service_factory(directory).play("東京", departure=DEPARTURE, region="千葉県")
    assert result.status is GachaStatus.COMMUNICATION_ERROR
    assert result.message == MESSAGE_COMMUNICATION_ERROR


def test_each_outcome_has_a_distinct_message() -> None:
    messages = {
        MESSAGE_DEPARTURE_NOT_FOUND,
        MESSAGE_NO_LINE_DATA,
        MESSAGE_NOT_FOUND,
        MESSAGE_COMMUNICATION_ERROR,
    }
    assert len(messages) == 4


def test_suggest_and_resolve_departure(service_factory, directory_factory, station_factory) -> None:
    directory = directory_factory(
        stations_by_name={"新宿": [station_factory("新宿", lat=35.6896, lon=139.7006)]}
    )
    service = service_factory(directory)
    assert service.suggest("   ") == []
    assert [s.name for s in service.suggest(" 新宿 ")] == ["新宿"]
    assert service.resolve_departure("新宿") == Coordinate(35.6896, 139.7006)
    assert service.resolve_departure("無い駅") is None
    assert directory.station_name_calls == ["新宿", "新宿", "無い駅"]


def test_lines_for_nationwide_is_empty(service_factory, directory_factory) -> None:
    directory = directory_factory()
    assert service_factory(directory).lines_for_region(NATIONWIDE) == []
    assert directory.line_calls == []


def test_reachable_uses_service_regions(service_factory) -> None:
    names = service_factory().reachable(DEPARTURE, 30)
    assert "東京都" in names
    assert "大阪府" not in names


def test_each_run_gets_its_own_rng(service_factory) -> None:
    service = service_factory()
    first, second = service.new_sampler(), service.new_sampler()
    assert first._rng is not second._rng
    assert first._rng is not service._rng


def test_seeded_services_draw_the_same_sequence(service_factory, directory_factory, station_factory) -> None:
    stations = {line: [station_factory(f"{line}駅", line=line, **NEAR)] for line in "ABCDEFGH"}

    def names(service):
        return [
            service.play("東京", departure=DEPARTURE, region="東京都", line_pool=list(stations)).candidate.name
            for _ in range(10)
        ]

    assert names(service_factory(directory_factory(stations_by_line=stations))) == names(
        service_factory(directory_factory(stations_by_line=stations))
    )


def test_departure_lookup_feeds_debounced_results(service_factory, directory_factory, station_factory) -> None:
    directory = directory_factory(
        stations_by_name={"新宿": [station_factory("新宿", lat=35.6896, lon=139.7006)]}
    )
    delivered = threading.Event()
    seen: list = []

    def on_result(stations, coordinate):
        seen.append(([s.name for s in stations], coordinate))
        delivered.set()

    lookup = service_factory(directory).departure_lookup(on_result, delay=0.05)
    lookup.submit("新宿")
    assert delivered.wait(timeout=5)
    lookup.close()
    assert seen == [(["新宿"], Coordinate(35.6896, 139.7006))]
