from __future__ import annotations

import logging
import os
import random
import threading
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

from clients.heartrails_express import (
    DEFAULT_BASE_URL,
    HeartRailsExpressClient,
    StationDirectoryError,
)

from .gacha_constants import (
    ANY_LINE,
    DEBOUNCE_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DISTANCE_MARGIN_KM,
    MAX_ATTEMPTS,
    MESSAGE_CANCELLED,
    MESSAGE_COMMUNICATION_ERROR,
    MESSAGE_DEPARTURE_NOT_FOUND,
    MESSAGE_NO_LINE_DATA,
    MESSAGE_NOT_FOUND,
    NATIONWIDE,
    SPEED_KMH,
    UNLIMITED_MINUTES,
)
from .gacha_models import (
    Candidate,
    Coordinate,
    GachaResult,
    GachaStatus,
    Region,
    SearchConstraints,
    Station,
)
from .geo_utils import estimate_between
from .line_catalog import LineCatalog
from .reachability import reachable_regions
from .regions import RegionFilter, load_regions
from .station_directory import HeartRailsStationDirectory, StationDirectory
from .station_lookup import DebouncedStationLookup

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class GachaError(RuntimeError):
    """Terminal outcome of a sampling run that is not a normal result."""

    status = GachaStatus.COMMUNICATION_ERROR
    user_message = MESSAGE_COMMUNICATION_ERROR


class DepartureNotFoundError(GachaError):
    status = GachaStatus.DEPARTURE_NOT_FOUND
    user_message = MESSAGE_DEPARTURE_NOT_FOUND


class NoLineDataError(GachaError):
    status = GachaStatus.NO_LINE_DATA
    user_message = MESSAGE_NO_LINE_DATA


class CommunicationError(GachaError):
    status = GachaStatus.COMMUNICATION_ERROR
    user_message = MESSAGE_COMMUNICATION_ERROR


class GachaSampler:
    """Draws one random destination that satisfies a set of SearchConstraints.

    The line pool is shuffled once and consumed without replacement; the
    first line that yields any satisfying station wins and one of its
    stations is picked uniformly. At most min(len(pool), max_attempts) line
    lookups are issued per run. Nothing is kept between runs.
    """

    def __init__(
        self,
        directory: StationDirectory,
        *,
        rng: random.Random | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        regions: Sequence[Region] | None = None,
        speed_kmh: float = SPEED_KMH,
        margin_km: float = DISTANCE_MARGIN_KM,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._directory = directory
        self._rng = rng or random.Random()
        self.max_attempts = max_attempts
        self._regions = tuple(regions) if regions is not None else None
        self._speed_kmh = speed_kmh
        self._margin_km = margin_km

    # ---------- public API ----------

    def sample(
        self,
        constraints: SearchConstraints,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> GachaResult:
        """Run one draw. Raises GachaError subclasses for the terminal failures."""
        if _is_cancelled(cancel_event):
            return _cancelled(constraints.departure)

        departure = self._resolve_departure(constraints)
        pool, drawn_region = self._build_line_pool(constraints, departure)
        if not pool:
            raise NoLineDataError(f"no lines to search for {constraints.region_filter.label}")

        limit = min(len(pool), self.max_attempts)
        attempts = 0
        for attempt, line in self._candidate_lines(pool, limit):
            if _is_cancelled(cancel_event):
                return _cancelled(departure, attempts=attempts, limit=limit, region=drawn_region)
            attempts = attempt
            if on_progress:
                on_progress(attempt, limit)

            stations = self._call_directory(self._directory.get_stations, line=line)
            candidates = self.satisfying_candidates(stations, constraints, departure)
            logger.debug(
                "Attempt %d/%d line=%s stations=%d candidates=%d",
                attempt,
                limit,
                line,
                len(stations),
                len(candidates),
            )
            if not candidates:
                continue

            picked = self._rng.choice(candidates)
            if _is_cancelled(cancel_event):
                return _cancelled(departure, attempts=attempts, limit=limit, region=drawn_region)
            return GachaResult(
                status=GachaStatus.FOUND,
                candidate=picked,
                attempts=attempts,
                limit=limit,
                region=drawn_region,
                departure=departure,
            )

        return GachaResult(
            status=GachaStatus.NOT_FOUND,
            attempts=attempts,
            limit=limit,
            message=MESSAGE_NOT_FOUND,
            region=drawn_region,
            departure=departure,
        )

    def satisfying_candidates(
        self,
        stations: Sequence[Station],
        constraints: SearchConstraints,
        departure: Coordinate,
    ) -> list[Candidate]:
        """Stations passing the region, line and time filters, with their estimates."""
        region_filter = constraints.region_filter
        line_bound = not region_filter.nationwide and not constraints.any_line
        candidates: list[Candidate] = []
        for station in stations:
            if not region_filter.matches(station):
                continue
            if line_bound and station.line != constraints.line_filter:
                continue
            dist, minutes = estimate_between(departure, station.coordinate, self._speed_kmh)
            if constraints.unlimited or minutes <= constraints.max_travel_minutes:
                candidates.append(Candidate(station=station, estimated_minutes=minutes, distance_km=dist))
        return candidates

    # ---------- steps ----------

    def _resolve_departure(self, constraints: SearchConstraints) -> Coordinate:
        if constraints.departure is not None:
            return constraints.departure
        name = constraints.departure_station.strip()
        if not name:
            raise DepartureNotFoundError("departure station is empty")
        stations = self._call_directory(self._directory.get_stations, name=name)
        if not stations:
            raise DepartureNotFoundError(f"departure station '{name}' not found")
        return stations[0].coordinate

    def _build_line_pool(
        self, constraints: SearchConstraints, departure: Coordinate
    ) -> tuple[list[str], str | None]:
        """Returns (line pool, prefecture drawn for a nationwide run)."""
        if constraints.region_filter.nationwide:
            names = reachable_regions(
                departure,
                constraints.max_travel_minutes,
                self._regions if self._regions is not None else load_regions(),
                speed_kmh=self._speed_kmh,
                margin_km=self._margin_km,
            )
            if not names:
                return [], None
            # 全国は1回のガチャにつき都道府県を1回だけ抽選する
            drawn = self._rng.choice(names)
            lines = self._call_directory(self._directory.get_lines, drawn)
            logger.debug("Nationwide draw picked %s (%d lines)", drawn, len(lines))
            return _dedupe(lines), drawn
        if not constraints.any_line:
            return [constraints.line_filter], None
        return _dedupe(constraints.candidate_line_pool), None

    def _candidate_lines(self, pool: Sequence[str], limit: int) -> Iterator[tuple[int, str]]:
        """Lazily yields (attempt, line) from an unbiased shuffle of the pool."""
        shuffled = list(pool)
        self._rng.shuffle(shuffled)
        for attempt, line in enumerate(shuffled[:limit], start=1):
            yield attempt, line

    @staticmethod
    def _call_directory(func: Callable, *args, **kwargs):
        """Invokes a directory lookup, wrapping failures in CommunicationError."""
        try:
            return func(*args, **kwargs)
        except StationDirectoryError as exc:
            raise CommunicationError(str(exc)) from exc


def _dedupe(lines: Sequence[str]) -> list[str]:
    return [line for line in dict.fromkeys(lines) if line]


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _cancelled(
    departure: Coordinate | None,
    *,
    attempts: int = 0,
    limit: int = 0,
    region: str | None = None,
) -> GachaResult:
    return GachaResult(
        status=GachaStatus.CANCELLED,
        attempts=attempts,
        limit=limit,
        message=MESSAGE_CANCELLED,
        region=region,
        departure=departure,
    )


class GachaService:
    """Wires the station directory, line catalog and sampler together."""

    def __init__(
        self,
        directory: StationDirectory | None = None,
        *,
        catalog: LineCatalog | None = None,
        rng: random.Random | None = None,
        max_attempts: int | None = None,
        regions: Sequence[Region] | None = None,
    ) -> None:
        if directory is None:
            timeout = float(
                os.getenv("STATION_API_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS)
            )
            base_url = os.getenv("HEARTRAILS_BASE_URL", DEFAULT_BASE_URL)
            directory = HeartRailsStationDirectory(
                HeartRailsExpressClient(base_url=base_url, timeout=timeout)
            )
        if catalog is None:
            catalog_path = os.getenv("GACHA_LINE_CATALOG")
            catalog = LineCatalog.from_csv(Path(catalog_path) if catalog_path else None)
        if max_attempts is None:
            max_attempts = int(os.getenv("GACHA_MAX_ATTEMPTS", MAX_ATTEMPTS))
        self.directory = directory
        self.catalog = catalog
        self.max_attempts = max(1, max_attempts)
        self._rng = rng or random.Random()
        self._regions = tuple(regions) if regions is not None else load_regions()

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    def new_sampler(self) -> GachaSampler:
        """Fresh sampler per run; each gets its own rng seeded from the service rng."""
        return GachaSampler(
            self.directory,
            rng=random.Random(self._rng.getrandbits(64)),
            max_attempts=self.max_attempts,
            regions=self._regions,
        )

    def reachable(self, departure: Coordinate | None, max_travel_minutes: int) -> list[str]:
        return reachable_regions(departure, max_travel_minutes, self._regions)

    def suggest(self, name: str) -> list[Station]:
        """Stations whose name matches the typed text; [] for blank input."""
        text = (name or "").strip()
        if not text:
            return []
        return GachaSampler._call_directory(self.directory.get_stations, name=text)

    def resolve_departure(self, name: str) -> Coordinate | None:
        stations = self.suggest(name)
        return stations[0].coordinate if stations else None

    def departure_lookup(
        self,
        on_result: Callable[[list[Station], Coordinate | None], None],
        *,
        delay: float = DEBOUNCE_SECONDS,
    ) -> DebouncedStationLookup:
        """Debounced, latest-wins lookup feeding typed departure names to on_result."""
        return DebouncedStationLookup(self.suggest, on_result, delay=delay)

    def lines_for_region(self, label: str) -> list[str]:
        """Known lines for a region label, from the catalog or the live directory."""
        region_filter = RegionFilter.from_label(label)
        prefecture = region_filter.lookup_prefecture
        if prefecture is None:
            return []
        known = self.catalog.lines_for(prefecture)
        if known:
            return list(known)
        return GachaSampler._call_directory(self.directory.get_lines, prefecture)

    def build_constraints(
        self,
        departure_station: str,
        *,
        departure: Coordinate | None = None,
        region: str = NATIONWIDE,
        line: str = ANY_LINE,
        max_travel_minutes: int = UNLIMITED_MINUTES,
        line_pool: Sequence[str] | None = None,
    ) -> SearchConstraints:
        """Builds immutable constraints; raises ValueError for an unknown region."""
        region_filter = RegionFilter.from_label(region)
        line = (line or ANY_LINE).strip() or ANY_LINE
        if region_filter.nationwide:
            # 路線指定は都道府県を選んだときだけ有効
            line = ANY_LINE
        if line_pool is not None:
            pool = tuple(line_pool)
        elif region_filter.nationwide:
            pool = ()
        elif line != ANY_LINE:
            pool = (line,)
        else:
            pool = tuple(self.lines_for_region(region_filter.label))
        return SearchConstraints(
            departure_station=departure_station,
            region_filter=region_filter,
            line_filter=line,
            max_travel_minutes=max_travel_minutes,
            candidate_line_pool=pool,
            departure=departure,
        )

    def draw(
        self,
        constraints: SearchConstraints,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> GachaResult:
        """Runs one sampling run and folds terminal failures into a GachaResult."""
        try:
            result = self.new_sampler().sample(
                constraints, on_progress=on_progress, cancel_event=cancel_event
            )
        except GachaError as exc:
            logger.warning("Gacha run ended with %s: %s", exc.status.value, exc)
            return GachaResult(
                status=exc.status,
                message=exc.user_message,
                departure=constraints.departure,
            )
        if result.found and result.candidate:
            logger.info(
                "Gacha picked %s (%s, %s) ~%d min after %d/%d attempts",
                result.candidate.name,
                result.candidate.line,
                result.candidate.prefecture,
                result.candidate.estimated_minutes,
                result.attempts,
                result.limit,
            )
        else:
            logger.info(
                "Gacha finished with %s after %d/%d attempts",
                result.status.value,
                result.attempts,
                result.limit,
            )
        return result

    def play(
        self,
        departure_station: str,
        *,
        departure: Coordinate | None = None,
        region: str = NATIONWIDE,
        line: str = ANY_LINE,
        max_travel_minutes: int = UNLIMITED_MINUTES,
        line_pool: Sequence[str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> GachaResult:
        """build_constraints + draw; a failed line lookup becomes a result too."""
        try:
            constraints = self.build_constraints(
                departure_station,
                departure=departure,
                region=region,
                line=line,
                max_travel_minutes=max_travel_minutes,
                line_pool=line_pool,
            )
        except GachaError as exc:
            logger.warning("Gacha constraints could not be built: %s", exc)
            return GachaResult(status=exc.status, message=exc.user_message, departure=departure)
        return self.draw(constraints, on_progress=on_progress, cancel_event=cancel_event)


__all__ = [
    "CommunicationError",
    "DepartureNotFoundError",
    "GachaError",
    "GachaSampler",
    "GachaService",
    "NoLineDataError",
    "ProgressCallback",
]
