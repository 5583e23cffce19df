"""Fortschrittsschätzung pro Stufe und asynchrone Zustellung an den Aufrufer.

Prozentwert = Bereichsanfang + Bereichsbreite × Mischung aus
  30 % Zeitkurve (easeInOutCubic), 50 % geschlossene Score-Lücke,
  20 % logarithmierte Anzahl Züge.
Der gemeldete Wert fällt innerhalb eines Laufs nie.
"""

import logging
import math
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from pydantic import BaseModel

from config.schema import ProgressConfig, TierConfig
from models.exam_schedule import HardSoftScore

logger = logging.getLogger(__name__)


class ProgressEvent(BaseModel):
    """Eine Fortschrittsmeldung."""

    percent: float
    tier_name: str
    score_text: str
    elapsed_ms: int


ProgressSink = Callable[[ProgressEvent], None]


def ease_in_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    if t < 0.5:
        return 4 * t * t * t
    u = 2 * t - 2
    return 1 + u * u * u / 2


def move_count_part(moves: int) -> float:
    return min(0.8, math.log1p(moves / 100) / math.log1p(10))


class ProgressDispatcher:
    """Stellt Meldungen auf einem eigenen Thread zu.

    Wartende Meldungen liegen in einem begrenzten Puffer; ist der Empfänger
    zu langsam, verfallen die ältesten. Fehler des Empfängers werden nur
    geloggt. Der Solver wartet nie auf den Empfänger, auch nicht in close().
    """

    def __init__(self, sink: Optional[ProgressSink], max_pending: int = 8) -> None:
        self.sink = sink
        self.dropped = 0
        self._pending: deque[ProgressEvent] = deque(maxlen=max_pending)
        self._lock = threading.Lock()
        self._draining = False
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="progress") if sink else None
        )

    def submit(self, event: ProgressEvent) -> None:
        if self._executor is None:
            return
        with self._lock:
            if len(self._pending) == self._pending.maxlen:
                self.dropped += 1
            self._pending.append(event)
            if self._draining:
                return
            self._draining = True
        self._executor.submit(self._drain)

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                event = self._pending.popleft()
            try:
                self.sink(event)
            except Exception as e:
                logger.warning(f"Fortschritts-Empfänger fehlgeschlagen: {e!r}")

    def close(self) -> None:
        """Nimmt keine Meldungen mehr an; ausstehende werden im Hintergrund zugestellt."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
            if self.dropped:
                logger.debug(f"{self.dropped} Fortschrittsmeldung(en) verworfen (Empfänger zu langsam)")


class ProgressEstimator:
    """Monotone Fortschrittsschätzung innerhalb des Bereichs einer Stufe."""

    def __init__(
        self,
        tier: TierConfig,
        config: Optional[ProgressConfig] = None,
        dispatcher: Optional[ProgressDispatcher] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.tier = tier
        self.config = config or ProgressConfig()
        self.dispatcher = dispatcher
        self.clock = clock
        self.start = tier.progress_start
        self.end = tier.progress_end
        self.estimate = tier.max_runtime_seconds
        self.started = clock()
        self.percent = self.start
        self.events: list[ProgressEvent] = []
        self._initial: Optional[HardSoftScore] = None
        self._worst_feasible_soft: Optional[int] = None
        self._last_emit: Optional[float] = None
        self._last_emitted_percent: Optional[float] = None

    # ─── Schätzung ───

    def _score_part(self, score: HardSoftScore) -> float:
        if self._initial is None:
            self._initial = score
        initial_hard = self._initial.hard
        if score.hard >= 0:
            hard_part = 1.0
        elif initial_hard < 0:
            hard_part = min(max(1 - score.hard / initial_hard, 0.0), 1.0)
        else:
            hard_part = 0.0

        soft_part = 0.0
        if score.hard >= 0:
            if self._worst_feasible_soft is None or score.soft < self._worst_feasible_soft:
                self._worst_feasible_soft = score.soft
            if score.soft >= 0:
                soft_part = 1.0
            elif self._worst_feasible_soft < 0:
                soft_part = min(max(1 - score.soft / self._worst_feasible_soft, 0.0), 1.0)
        return 0.8 * hard_part + 0.2 * soft_part

    def estimate_fraction(self, elapsed: float, score: HardSoftScore, moves: int) -> float:
        """Rohwert in [0, 1] (nicht monoton)."""
        ratio = elapsed / self.estimate if self.estimate > 0 else 1.0
        combined = (0.3 * ease_in_out_cubic(ratio)
                    + 0.5 * self._score_part(score)
                    + 0.2 * move_count_part(moves))
        if ratio >= 1.0:
            combined = max(combined, 0.9)
        elif ratio >= 0.8:
            combined = max(combined, 0.7)
        return min(combined, 1.0)

    # ─── Meldungen ───

    def update(
        self,
        score: HardSoftScore,
        moves: int,
        improved: bool = False,
        force: bool = False,
    ) -> Optional[ProgressEvent]:
        """Neuen Stand verarbeiten; liefert die Meldung, falls eine versendet wurde."""
        now = self.clock()
        elapsed = now - self.started
        span = self.end - self.start
        ceiling = self.end - 1
        raw = self.start + span * self.estimate_fraction(elapsed, score, moves)
        percent = max(self.percent, min(raw, ceiling))
        if improved and percent == self.percent:
            percent = min(self.percent + 1, ceiling)
        if elapsed >= self.estimate:
            percent = max(percent, self.end - 5)
        self.percent = max(self.percent, percent)
        return self._maybe_emit(now, score, force)

    def complete(self, score: HardSoftScore) -> ProgressEvent:
        """Stufe beendet: Bereichsende erreichen und sofort melden."""
        self.percent = self.end
        return self._maybe_emit(self.clock(), score, force=True)

    def _maybe_emit(self, now: float, score: HardSoftScore, force: bool) -> Optional[ProgressEvent]:
        if not force and self._last_emit is not None:
            since_ms = (now - self._last_emit) * 1000
            changed = self.percent != self._last_emitted_percent
            if since_ms < self.config.throttle_ms:
                return None
            if not changed and since_ms < self.config.heartbeat_ms:
                return None
        event = ProgressEvent(
            percent=round(self.percent, 1),
            tier_name=self.tier.name,
            score_text=str(score),
            elapsed_ms=int((now - self.started) * 1000),
        )
        self._last_emit = now
        self._last_emitted_percent = self.percent
        self.events.append(event)
        if self.dispatcher is not None:
            self.dispatcher.submit(event)
        return event
