"""Stufenweises Lösen: flash → standard → precise.

Jede Stufe ist ein vollständiger Zyklus aus Konstruktion, lokaler Suche und
Abbruchprüfung auf einer frischen Kopie des Problems. Nach jeder Stufe wird
die Qualität eingestuft; liegt sie über der Schwelle der Stufe, wird
eskaliert. Ausnahmen innerhalb einer Stufe führen zu einem Teilergebnis
(status="partial") mit dem besten bis dahin bekannten Plan.
"""

import logging
import random
import time
from typing import Literal, Optional

from pydantic import BaseModel

from config.schema import EngineConfig, TierConfig
from models.exam_schedule import ExamSchedule, HardSoftScore
from solver.construction import ConstructionHeuristic
from solver.context import SolvingContext
from solver.errors import NoSolutionError
from solver.local_search import LocalSearchEngine
from solver.moves import MoveSelector
from solver.pinning import PinManager
from solver.progress import ProgressDispatcher, ProgressEstimator, ProgressEvent
from solver.scoring import ScoreDirector, ScoringEngine
from solver.termination import TerminationPolicy

logger = logging.getLogger(__name__)


def quality_level(score: Optional[HardSoftScore]) -> int:
    """1 = sehr gut … 4 = unzureichend/unzulässig."""
    if score is None or score.hard < 0:
        return 4
    if score.soft >= -20:
        return 1
    if score.soft >= -100:
        return 2
    if score.soft >= -300:
        return 3
    return 4


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class TierResult(BaseModel):
    """Ergebnis einer Stufe: vollständig oder Teilergebnis nach einem Fehler."""

    tier_name: str
    status: Literal["complete", "partial"]
    schedule: Optional[ExamSchedule] = None
    score: Optional[HardSoftScore] = None
    termination_reason: Optional[str] = None
    error: Optional[str] = None
    elapsed_seconds: float = 0.0
    steps: int = 0
    moves_evaluated: int = 0

    @property
    def has_solution(self) -> bool:
        return self.schedule is not None

    @property
    def quality_level(self) -> int:
        return quality_level(self.score)


class AdaptiveResult(BaseModel):
    schedule: ExamSchedule
    score: HardSoftScore
    tier_reached: str
    tiers: list[TierResult] = []


# ─── Eine Stufe ──────────────────────────────────────────────────────────────

class TierRunner:
    """Führt genau eine Stufe aus (Konstruktion + Suche + Abbruch)."""

    def __init__(
        self,
        config: EngineConfig,
        ctx: SolvingContext,
        dispatcher: Optional[ProgressDispatcher] = None,
    ) -> None:
        self.config = config
        self.ctx = ctx
        self.dispatcher = dispatcher

    def run(self, schedule: ExamSchedule, tier: TierConfig, seed: Optional[int] = None) -> TierResult:
        started = time.perf_counter()
        work = schedule.model_copy(deep=True)
        pins = PinManager.snapshot(work)
        rng = random.Random(seed)
        progress = ProgressEstimator(tier, self.config.solver.progress, self.dispatcher)
        search: Optional[LocalSearchEngine] = None
        logger.info(f"Stufe {tier.name} gestartet (max {tier.max_runtime_seconds:.0f}s)")

        try:
            director = ScoreDirector(work, self.ctx)
            selector = MoveSelector(director, rng)
            ConstructionHeuristic(director, selector).run()
            logger.info(f"Stufe {tier.name}: Konstruktion {director.score}")
            progress.update(director.score, 0, force=True)
            termination = TerminationPolicy(tier, self.config.solver.termination, self.ctx)
            search = LocalSearchEngine(director, selector, tier, termination, rng, progress)
            search.run()
        except Exception as e:
            logger.exception(f"Stufe {tier.name} abgebrochen: {e}")
            if search is not None and search.best_score is not None:
                self._restore_snapshot(work, search)
            try:
                result = self._finish(work, tier, pins, progress, started, search)
            except Exception as inner:
                logger.error(f"Stufe {tier.name}: kein verwertbarer Plan ({inner})")
                return TierResult(
                    tier_name=tier.name, status="partial",
                    error=f"{type(e).__name__}: {e}",
                    elapsed_seconds=time.perf_counter() - started,
                )
            result.status = "partial"
            result.error = f"{type(e).__name__}: {e}"
            return result

        result = self._finish(work, tier, pins, progress, started, search)
        result.termination_reason = search.termination.reason
        logger.info(
            f"Stufe {tier.name} beendet ({result.termination_reason}): {result.score}, "
            f"{result.steps} Schritte in {result.elapsed_seconds:.1f}s"
        )
        return result

    @staticmethod
    def _restore_snapshot(work: ExamSchedule, search: LocalSearchEngine) -> None:
        # Director kann nach einer Ausnahme inkonsistent sein: direkt zurückschreiben
        for a in work.assignments:
            snap = search.best_snapshot.get(a.id)
            if snap is not None:
                a.restore(snap)

    def _finish(
        self,
        work: ExamSchedule,
        tier: TierConfig,
        pins: dict[str, tuple],
        progress: ProgressEstimator,
        started: float,
        search: Optional[LocalSearchEngine],
    ) -> TierResult:
        if PinManager.verify(work, pins):
            PinManager.restore(work, pins)
        work.score = ScoringEngine(self.ctx).calculate(work)
        progress.complete(work.score)
        return TierResult(
            tier_name=tier.name,
            status="complete",
            schedule=work,
            score=work.score,
            elapsed_seconds=time.perf_counter() - started,
            steps=search.stats.steps if search else 0,
            moves_evaluated=search.stats.evaluated if search else 0,
        )


# ─── Adaptive Eskalation ─────────────────────────────────────────────────────

class AdaptiveSolvingOrchestrator:
    """Zustandsautomat {flash, standard, precise, done}."""

    def __init__(
        self,
        config: EngineConfig,
        ctx: SolvingContext,
        dispatcher: Optional[ProgressDispatcher] = None,
    ) -> None:
        self.config = config
        self.ctx = ctx
        self.dispatcher = dispatcher
        self.runner = TierRunner(config, ctx, dispatcher)

    def _seed(self, index: int) -> Optional[int]:
        seed = self.config.solver.seed
        return None if seed is None else seed + index

    def solve(self, schedule: ExamSchedule) -> AdaptiveResult:
        started = time.perf_counter()
        results: list[TierResult] = []
        best: Optional[TierResult] = None

        for index, tier in enumerate(self.config.solver.tiers):
            result = self.runner.run(schedule, tier, self._seed(index))
            results.append(result)
            if result.has_solution and (best is None or result.score > best.score):
                best = result

            level = result.quality_level
            if self.ctx.cancelled:
                logger.info(f"Abbruch angefordert nach Stufe {tier.name}")
                break
            if tier.upgrade_threshold is None or level <= tier.upgrade_threshold:
                logger.info(f"Stufe {tier.name}: Qualitätsstufe {level}, fertig")
                break
            logger.info(
                f"Stufe {tier.name}: Qualitätsstufe {level} > {tier.upgrade_threshold}, eskaliere"
            )

        if best is None:
            from analysis.diagnostics import FeasibilityAnalyzer
            diagnosis = FeasibilityAnalyzer(self.ctx).analyze(schedule)
            raise NoSolutionError("Keine Stufe hat einen Plan geliefert", diagnosis)

        self._post_processing(best, started)
        return AdaptiveResult(
            schedule=best.schedule,
            score=best.score,
            tier_reached=results[-1].tier_name,
            tiers=results,
        )

    def _post_processing(self, best: TierResult, started: float) -> None:
        if self.dispatcher is None:
            return
        progress = self.config.solver.progress
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        for percent in (progress.post_processing_start, progress.post_processing_end):
            self.dispatcher.submit(ProgressEvent(
                percent=percent, tier_name="done",
                score_text=str(best.score), elapsed_ms=elapsed_ms,
            ))
