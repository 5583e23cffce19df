"""Lokale Suche: Late Acceptance + Entity-Tabu + Forager.

Pro Schritt werden Züge gezogen, bis `accepted_count_limit` davon akzeptiert
sind; der beste akzeptierte Zug wird ausgeführt. Der beste je gefundene
Zustand wird als Snapshot gehalten und am Ende wiederhergestellt, der
zurückgegebene Plan ist also nie schlechter als ein zuvor gefundener.
"""

import logging
import random
from collections import deque
from typing import Optional

from config.schema import TierConfig
from models.exam_assignment import PLANNING_FIELDS
from models.exam_schedule import HardSoftScore
from solver.moves import Move, MoveSelector
from solver.progress import ProgressEstimator
from solver.scoring import ScoreDirector
from solver.termination import TerminationPolicy

logger = logging.getLogger(__name__)


class SearchStats:
    """Zähler eines Laufs (für Logging und Fortschritt)."""

    def __init__(self) -> None:
        self.steps = 0
        self.evaluated = 0
        self.accepted = 0
        self.improvements = 0
        self.by_kind: dict[str, int] = {}

    def __repr__(self) -> str:
        return (f"SearchStats(steps={self.steps}, evaluated={self.evaluated}, "
                f"accepted={self.accepted}, improvements={self.improvements}, "
                f"by_kind={self.by_kind})")


class LocalSearchEngine:
    """Verbessert einen konstruierten Plan bis zur Abbruchbedingung."""

    def __init__(
        self,
        director: ScoreDirector,
        selector: MoveSelector,
        tier: TierConfig,
        termination: TerminationPolicy,
        rng: random.Random,
        progress: Optional[ProgressEstimator] = None,
    ) -> None:
        self.director = director
        self.selector = selector
        self.tier = tier
        self.termination = termination
        self.rng = rng
        self.progress = progress
        self.stats = SearchStats()
        # Tabu-Liste höchstens halb so lang wie die Zahl beweglicher Zuweisungen
        tabu_size = min(tier.entity_tabu_size, len(selector.movable) // 2)
        self._tabu: deque[str] = deque(maxlen=tabu_size)
        self._late: list[HardSoftScore] = []
        self._best_snapshot: dict[str, tuple] = {}
        self.best_score: Optional[HardSoftScore] = None

    # ─── Bester Zustand ───

    def _remember_best(self) -> None:
        self.best_score = self.director.score
        self._best_snapshot = {
            a.id: a.snapshot() for a in self.director.schedule.assignments if not a.pinned
        }

    @property
    def best_snapshot(self) -> dict[str, tuple]:
        """(Datum, Prüfer 1, Prüfer 2, Ersatz) je beweglicher Zuweisung im besten Zustand."""
        return self._best_snapshot

    def restore_best(self) -> HardSoftScore:
        """Besten Zustand über den ScoreDirector wiederherstellen."""
        changes = []
        for a in self.director.schedule.assignments:
            snap = self._best_snapshot.get(a.id)
            if snap is None:
                continue
            for field, value in zip(PLANNING_FIELDS, snap):
                if getattr(a, field) != value:
                    changes.append((a, field, value))
        if changes:
            self.director.apply(changes)
        return self.director.score

    # ─── Akzeptanz ───

    def _is_tabu(self, move: Move) -> bool:
        if not self._tabu:
            return False
        return any(eid in self._tabu for eid in move.entity_ids())

    def _accepts(self, move: Move, score: HardSoftScore, current: HardSoftScore) -> bool:
        # Aspiration: neuer Bestwert hebt Tabu auf
        if self.best_score is not None and score > self.best_score:
            return True
        if self._is_tabu(move):
            return False
        size = self.tier.late_acceptance_size
        if size == 0:
            return True
        late = self._late[self.stats.steps % size]
        return score >= late or score >= current

    def _after_step(self, move: Move) -> None:
        # Late-Acceptance-Slot erhält den Score nach dem Schritt
        size = self.tier.late_acceptance_size
        if size:
            self._late[self.stats.steps % size] = self.director.score
        for eid in move.entity_ids():
            self._tabu.append(eid)
        self.stats.steps += 1
        self.stats.by_kind[move.kind] = self.stats.by_kind.get(move.kind, 0) + 1

    # ─── Schleife ───

    def run(self) -> HardSoftScore:
        """Sucht bis zur Abbruchbedingung; liefert den besten Score."""
        start = self.director.score
        self._late = [start] * self.tier.late_acceptance_size
        self._remember_best()
        self.termination.record(start)
        max_attempts = 20 * self.tier.accepted_count_limit

        while not self.termination.should_terminate():
            current = self.director.score
            picked: Optional[tuple[HardSoftScore, Move]] = None
            accepted = 0
            for _ in range(max_attempts):
                move = self.selector.next_move()
                if move is None:
                    break
                score = self.director.evaluate(move.changes())
                self.stats.evaluated += 1
                if not self._accepts(move, score, current):
                    continue
                accepted += 1
                if picked is None or score > picked[0]:
                    picked = (score, move)
                if accepted >= self.tier.accepted_count_limit:
                    break

            self.termination.step()
            if picked is None:
                if self.selector.next_move() is None:
                    logger.debug("Keine beweglichen Zuweisungen – Suche beendet")
                    break
                # Heartbeat auch ohne akzeptierten Zug
                if self.progress is not None:
                    self.progress.update(self.director.score, self.stats.evaluated)
                continue

            score, move = picked
            self.director.apply(move.changes())
            self.stats.accepted += 1
            improved = self.termination.record(score)
            if self.best_score is None or score > self.best_score:
                self._remember_best()
                self.stats.improvements += 1
                logger.debug(f"Neuer Bestwert {score} ({move.kind}, Schritt {self.stats.steps})")
            self._after_step(move)
            if self.progress is not None:
                self.progress.update(self.director.score, self.stats.evaluated, improved=improved)

        logger.debug(f"Suche beendet ({self.termination.reason}): {self.stats}")
        return self.restore_best()
