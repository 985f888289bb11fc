from __future__ import annotations

import asyncio
import json
import logging
import os
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from schemas import (
    EstimateOut,
    GachaRequest,
    GachaResultOut,
    LinesOut,
    RegionsOut,
    StationOut,
)
from services import GachaError, GachaService
from services.gacha_constants import (
    DEBOUNCE_SECONDS,
    DEFAULT_GACHA_TIMEOUT_SECONDS,
    MESSAGE_COMMUNICATION_ERROR,
    MESSAGE_PROGRESS,
    MESSAGE_SEARCHING,
    UNLIMITED_MINUTES,
)
from services.gacha_models import Coordinate, GachaResult, GachaStatus, Station
from services.geo_utils import distance_km, estimate_minutes
from services.reachability import reachability_radius_km
from services.regions import RegionFilter, prefecture_code, selectable_region_labels

router = APIRouter(prefix="/api/v1")
_gacha_service: GachaService | None = None
logger = logging.getLogger(__name__)

# 1回のガチャ全体のタイムアウト
GACHA_TIMEOUT_SECONDS = float(os.getenv("GACHA_TIMEOUT_SECONDS", DEFAULT_GACHA_TIMEOUT_SECONDS))
# 駅名サジェストの入力待ち
SUGGEST_DEBOUNCE_SECONDS = float(os.getenv("SUGGEST_DEBOUNCE_SECONDS", DEBOUNCE_SECONDS))


def get_gacha_service() -> GachaService:
    global _gacha_service
    if _gacha_service is None:
        _gacha_service = GachaService()
    return _gacha_service


@router.get("/health")
def read_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/regions", response_model=RegionsOut)
def list_regions(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lon: Optional[float] = Query(default=None, ge=-180, le=180),
    max_minutes: int = Query(default=UNLIMITED_MINUTES, ge=0),
    service: GachaService = Depends(get_gacha_service),
) -> dict:
    departure = Coordinate(lat, lon) if lat is not None and lon is not None else None
    reachable = service.reachable(departure, max_minutes)
    radius = (
        reachability_radius_km(max_minutes)
        if departure is not None and max_minutes != UNLIMITED_MINUTES
        else None
    )
    return {
        "reachable": reachable,
        "selectable": selectable_region_labels(reachable),
        "radius_km": radius,
        "codes": _prefecture_codes(reachable),
    }


@router.get("/lines", response_model=LinesOut)
def list_lines(
    region: str = Query(...),
    service: GachaService = Depends(get_gacha_service),
) -> dict:
    try:
        lines = service.lines_for_region(region)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except GachaError as exc:
        logger.warning("Line lookup for %s failed: %s", region, exc)
        raise HTTPException(status_code=502, detail=exc.user_message) from exc
    return {"region": region, "lines": lines}


@router.get("/stations/suggest", response_model=list[StationOut])
def suggest_stations(
    name: str = Query(...),
    service: GachaService = Depends(get_gacha_service),
) -> list[dict]:
    try:
        stations = service.suggest(name)
    except GachaError as exc:
        logger.warning("Station suggestion for %r failed: %s", name, exc)
        raise HTTPException(status_code=502, detail=exc.user_message) from exc
    return [station.to_dict() for station in stations]


@router.websocket("/stations/suggest/ws")
async def suggest_stations_ws(
    websocket: WebSocket,
    service: GachaService = Depends(get_gacha_service),
) -> None:
    """Each text frame is the current departure input; answers arrive debounced, latest input wins."""
    await websocket.accept()
    loop = asyncio.get_running_loop()

    def on_result(stations: list[Station], departure: Coordinate | None) -> None:
        payload = {
            "stations": [station.to_dict() for station in stations],
            "departure": departure.to_dict() if departure else None,
        }
        # タイマースレッドから呼ばれる
        asyncio.run_coroutine_threadsafe(websocket.send_json(payload), loop)

    lookup = service.departure_lookup(on_result, delay=SUGGEST_DEBOUNCE_SECONDS)
    try:
        while True:
            lookup.submit(await websocket.receive_text())
    except WebSocketDisconnect:
        logger.debug("Station suggestion socket closed.")
    finally:
        lookup.close()


@router.get("/estimate", response_model=EstimateOut)
def estimate(
    from_lat: float = Query(..., ge=-90, le=90),
    from_lon: float = Query(..., ge=-180, le=180),
    to_lat: float = Query(..., ge=-90, le=90),
    to_lon: float = Query(..., ge=-180, le=180),
) -> dict:
    dist = distance_km(from_lat, from_lon, to_lat, to_lon)
    minutes = estimate_minutes(dist)
    return {"distance_km": round(dist, 3), "estimated_minutes": minutes}


@router.post("/gacha", response_model=GachaResultOut)
def draw_gacha(
    req: GachaRequest,
    service: GachaService = Depends(get_gacha_service),
) -> dict:
    _validate_region(req.region)
    departure = _to_coordinate(req)
    cancel_event = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(_play, service, req, departure, cancel_event, None)
        try:
            result = future.result(timeout=GACHA_TIMEOUT_SECONDS)
        except TimeoutError:
            cancel_event.set()
            logger.warning("Gacha timed out for departure %r.", req.departure_station)
            result = _communication_failure(departure)
    finally:
        # タイムアウト時はワーカーを待たない
        executor.shutdown(wait=False)
    return result.to_dict()


@router.post("/gacha/stream")
def stream_gacha(
    req: GachaRequest,
    service: GachaService = Depends(get_gacha_service),
) -> StreamingResponse:
    """NDJSON: progress lines, then exactly one result line."""
    _validate_region(req.region)
    departure = _to_coordinate(req)
    cancel_event = threading.Event()
    events: queue.Queue[dict] = queue.Queue()

    def on_progress(attempt: int, limit: int) -> None:
        events.put(
            {
                "type": "progress",
                "attempt": attempt,
                "limit": limit,
                "message": MESSAGE_PROGRESS.format(attempt=attempt, limit=limit),
            }
        )

    def worker() -> None:
        result = _play(service, req, departure, cancel_event, on_progress)
        events.put({"type": "result", **result.to_dict()})

    def event_stream() -> Iterator[str]:
        yield _ndjson({"type": "progress", "attempt": 0, "limit": 0, "message": MESSAGE_SEARCHING})
        threading.Thread(target=worker, daemon=True).start()
        deadline = time.monotonic() + GACHA_TIMEOUT_SECONDS
        try:
            while True:
                try:
                    event = events.get(timeout=max(0.0, deadline - time.monotonic()))
                except queue.Empty:
                    logger.warning("Gacha stream timed out for departure %r.", req.departure_station)
                    yield _ndjson({"type": "result", **_communication_failure(departure).to_dict()})
                    return
                yield _ndjson(event)
                if event["type"] == "result":
                    return
        finally:
            # 切断されたら進行中のガチャは結果を捨てる
            cancel_event.set()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


def _play(
    service: GachaService,
    req: GachaRequest,
    departure: Coordinate | None,
    cancel_event: threading.Event,
    on_progress,
) -> GachaResult:
    try:
        return service.play(
            req.departure_station,
            departure=departure,
            region=req.region,
            line=req.line,
            max_travel_minutes=req.max_minutes,
            line_pool=req.lines,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
    except Exception:
        logger.exception("Gacha failed for departure %r.", req.departure_station)
        return _communication_failure(departure)


def _prefecture_codes(names: list[str]) -> dict[str, int]:
    codes: dict[str, int] = {}
    for name in names:
        code = prefecture_code(name)
        if code is not None:
            codes[name] = code
    return codes


def _validate_region(label: str) -> None:
    try:
        RegionFilter.from_label(label)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _to_coordinate(req: GachaRequest) -> Coordinate | None:
    if req.departure is None:
        return None
    return Coordinate(lat=req.departure.lat, lon=req.departure.lon)


def _communication_failure(departure: Coordinate | None) -> GachaResult:
    return GachaResult(
        status=GachaStatus.COMMUNICATION_ERROR,
        message=MESSAGE_COMMUNICATION_ERROR,
        departure=departure,
    )


def _ndjson(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False) + "\n"
