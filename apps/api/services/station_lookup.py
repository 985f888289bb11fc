from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from .gacha_constants import DEBOUNCE_SECONDS
from .gacha_models import Coordinate, Station

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Sequence[Station]]
ResultFn = Callable[[list[Station], "Coordinate | None"], None]


@dataclass
class LookupToken:
    generation: int
    text: str
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class DebouncedStationLookup:
    """Resolves typed departure names after a quiet period, latest input wins.

    Every submit() invalidates the previous token and restarts the timer.
    A lookup result is handed to ``on_result`` only while its token is still
    the live one, so a slow answer for stale input never overwrites a newer
    one. Failed lookups are logged and dropped.
    """

    def __init__(
        self,
        fetch: FetchFn,
        on_result: ResultFn,
        *,
        delay: float = DEBOUNCE_SECONDS,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._fetch = fetch
        self._on_result = on_result
        self._delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._timer: threading.Timer | None = None
        self._live: LookupToken | None = None
        self._generation = 0

    @property
    def live_token(self) -> LookupToken | None:
        return self._live

    def submit(self, text: str) -> LookupToken | None:
        with self._lock:
            self._invalidate()
            query = (text or "").strip()
            if not query:
                self._on_result([], None)
                return None
            self._generation += 1
            token = LookupToken(self._generation, query)
            self._live = token
            timer = self._timer_factory(self._delay, self._run, args=(token,))
            timer.daemon = True
            self._timer = timer
            timer.start()
            return token

    def cancel(self) -> None:
        with self._lock:
            self._invalidate()

    close = cancel

    def _invalidate(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._live is not None:
            self._live.cancel()
            self._live = None

    def _run(self, token: LookupToken) -> None:
        if token.cancelled:
            return
        try:
            stations = list(self._fetch(token.text))
        except Exception:
            logger.warning("Station lookup for %r failed; dropping result.", token.text, exc_info=True)
            return
        with self._lock:
            if token.cancelled or token is not self._live:
                logger.debug("Dropping stale lookup result for %r", token.text)
                return
            coordinate = stations[0].coordinate if stations else None
            self._on_result(stations, coordinate)


__all__ = ["DebouncedStationLookup", "LookupToken"]
