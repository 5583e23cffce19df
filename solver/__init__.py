"""Solver-Paket: Bewertung, Konstruktion, lokale Suche, adaptive Stufen."""

from .api import build_initial_schedule, score_only, solve, solve_adaptive, validate_schedule
from .context import SolvingContext
from .errors import InputError, NoSolutionError, SchedulingError
from .orchestrator import AdaptiveSolvingOrchestrator, TierResult, quality_level
from .pinning import PinManager, PinnedAssignment
from .progress import ProgressEvent
from .scoring import ConstraintViolation, ScoreDirector, ScoreResult, ScoringEngine

__all__ = [
    "AdaptiveSolvingOrchestrator",
    "ConstraintViolation",
    "InputError",
    "NoSolutionError",
    "PinManager",
    "PinnedAssignment",
    "ProgressEvent",
    "SchedulingError",
    "ScoreDirector",
    "ScoreResult",
    "ScoringEngine",
    "SolvingContext",
    "TierResult",
    "build_initial_schedule",
    "quality_level",
    "score_only",
    "solve",
    "solve_adaptive",
    "validate_schedule",
]
