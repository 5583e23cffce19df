"""Abbruchkriterien eines Solver-Laufs."""

import time
from collections import deque
from typing import Callable, Optional

from config.schema import TerminationConfig, TierConfig
from models.exam_schedule import HardSoftScore
from solver.context import SolvingContext

Clock = Callable[[], float]


class TerminationPolicy:
    """Entscheidet nach jedem Schritt, ob der Lauf endet.

    Gründe (in Prüfreihenfolge): cancelled, perfect, max_runtime, acceptable,
    stagnation, convergence, step_limit.
    """

    def __init__(
        self,
        tier: TierConfig,
        config: Optional[TerminationConfig] = None,
        ctx: Optional[SolvingContext] = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.tier = tier
        self.config = config or TerminationConfig()
        self.ctx = ctx
        self.clock = clock
        self.started = clock()
        self.last_improvement = self.started
        self.best: Optional[HardSoftScore] = None
        self.steps = 0
        self.reason: Optional[str] = None
        self._history: deque[HardSoftScore] = deque(maxlen=self.config.convergence_window)

    def elapsed(self) -> float:
        return self.clock() - self.started

    def record(self, score: HardSoftScore) -> bool:
        """Neuen Score melden; True wenn er den bisher besten übertrifft."""
        if self.best is not None and score <= self.best:
            return False
        self.best = score
        self.last_improvement = self.clock()
        self._history.append(score)
        return True

    def step(self) -> None:
        self.steps += 1

    def _converged(self) -> bool:
        if len(self._history) < self._history.maxlen:
            return False
        first, last = self._history[0], self._history[-1]
        return (last.hard - first.hard == 0
                and abs(last.soft - first.soft) < self.config.convergence_soft_delta)

    def should_terminate(self) -> bool:
        self.reason = self._check()
        return self.reason is not None

    def _check(self) -> Optional[str]:
        if self.ctx is not None and self.ctx.cancelled:
            return "cancelled"
        elapsed = self.elapsed()
        best = self.best
        if best is not None and best.hard >= 0 and best.soft >= 0:
            return "perfect"
        if elapsed >= self.tier.max_runtime_seconds:
            return "max_runtime"
        past_min = elapsed >= self.tier.min_runtime_seconds
        if (best is not None and past_min and best.hard >= 0
                and best.soft >= self.config.acceptable_soft_score):
            return "acceptable"
        if past_min and self.clock() - self.last_improvement >= self.tier.stagnation_seconds:
            return "stagnation"
        if elapsed >= 2 * self.tier.min_runtime_seconds and self._converged():
            return "convergence"
        if self.tier.step_limit is not None and self.steps >= self.tier.step_limit:
            return "step_limit"
        return None
