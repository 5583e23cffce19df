"""Constraint-Katalog als explizite, geordnete Liste von Klassen."""

from config.schema import ConstraintConfig
from solver.constraints.base import (
    Constraint,
    ConstraintMatch,
    Recommendation,
    Scope,
    ScoringView,
)
from solver.constraints.hard import HARD_CONSTRAINTS
from solver.constraints.soft import SOFT_CONSTRAINTS

ALL_CONSTRAINTS: list[type[Constraint]] = HARD_CONSTRAINTS + SOFT_CONSTRAINTS


def build_constraints(config: ConstraintConfig) -> list[Constraint]:
    """Aktivierte Constraints in Katalogreihenfolge instanziieren."""
    constraints = [cls(config) for cls in ALL_CONSTRAINTS]
    return [c for c in constraints if c.enabled]


__all__ = [
    "ALL_CONSTRAINTS",
    "Constraint",
    "ConstraintMatch",
    "HARD_CONSTRAINTS",
    "Recommendation",
    "SOFT_CONSTRAINTS",
    "Scope",
    "ScoringView",
    "build_constraints",
]
