"""Öffentliche Einstiegspunkte der Planungs-Engine.

    build_initial_schedule  Problem aus Prüflingen, Prüfern und Datumsfenster
    solve                   eine einzelne Stufe (blockierend)
    solve_adaptive          flash → standard → precise mit Fortschritt
    score_only              Bewertung ohne Suche (deterministisch)

Eingabefehler werden vor dem Lauf als InputError gemeldet.
"""

import logging
import threading
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from config.schema import ConstraintConfig, EngineConfig, TierConfig
from models.exam_assignment import ExamAssignment
from models.exam_schedule import ExamSchedule, HardSoftScore
from models.student import Student
from models.teacher import Teacher
from solver.context import HolidayPredicate, SolvingContext
from solver.duty import parse_exam_date
from solver.errors import InputError, NoSolutionError
from solver.orchestrator import AdaptiveSolvingOrchestrator, TierRunner
from solver.pinning import PinManager
from solver.progress import ProgressDispatcher, ProgressSink
from solver.scoring import ConstraintViolation, ScoringEngine

logger = logging.getLogger(__name__)

DateLike = Union[date, str]
ConstraintConfigLike = Union[ConstraintConfig, Mapping, None]


# ─── Hilfsfunktionen ─────────────────────────────────────────────────────────

def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return parse_exam_date(value)


def _constraint_config(value: ConstraintConfigLike) -> ConstraintConfig:
    if value is None:
        return ConstraintConfig()
    if isinstance(value, ConstraintConfig):
        return value
    try:
        return ConstraintConfig.from_mapping(value)
    except (ValidationError, TypeError, ValueError) as e:
        raise InputError(f"Ungültige Constraint-Konfiguration: {e}") from e


def _unique_ids(items: Iterable, what: str) -> None:
    seen = set()
    for item in items:
        if item.id in seen:
            raise InputError(f"Doppelte {what}-ID: {item.id}")
        seen.add(item.id)


def validate_schedule(schedule: ExamSchedule) -> None:
    """Prüft ein Problem vor dem Lauf.

    Raises:
        InputError: leere Listen, unbekannte IDs, nicht lesbare Daten,
            fehlende oder doppelte Prüfungstage eines Prüflings.
    """
    if not schedule.students:
        raise InputError("Keine Prüflinge angegeben")
    if not schedule.teachers:
        raise InputError("Keine Prüfer angegeben")
    if not schedule.available_dates:
        raise InputError("Keine verfügbaren Prüfungstage")
    _unique_ids(schedule.students, "Prüfling")
    _unique_ids(schedule.teachers, "Prüfer")
    _unique_ids(schedule.assignments, "Prüfungs")
    for text in schedule.available_dates:
        parse_exam_date(text)

    student_ids = {s.id for s in schedule.students}
    teacher_ids = {t.id for t in schedule.teachers}
    for a in schedule.assignments:
        if a.student_id not in student_ids:
            raise InputError(f"Prüfung {a.id}: unbekannter Prüfling {a.student_id}")
        if a.exam_date is not None:
            parse_exam_date(a.exam_date)
        for _, tid in a.role_teachers():
            if tid not in teacher_ids:
                raise InputError(f"Prüfung {a.id}: unbekannter Prüfer {tid}")

    # Genau eine Prüfung je Prüfungstag: day1, bei zweitägigen zusätzlich day2
    found: dict[str, list[str]] = {s.id: [] for s in schedule.students}
    for a in schedule.assignments:
        found[a.student_id].append(a.exam_type)
    for s in schedule.students:
        expected = ["day1", "day2"] if s.needs_day2 else ["day1"]
        types = sorted(found[s.id])
        if types != expected:
            raise InputError(
                f"Prüfling {s.id} ({s.exam_days} Tag(e)): Prüfungen {types or 'keine'}, "
                f"erwartet {expected}"
            )


def _prepare(schedule: ExamSchedule, constraint_config: ConstraintConfigLike = None) -> ExamSchedule:
    validate_schedule(schedule)
    problem = schedule.model_copy(deep=True)
    if constraint_config is not None:
        problem.constraint_config = _constraint_config(constraint_config)
    unpinned = PinManager.auto_unpin(problem)
    if unpinned:
        logger.warning(f"{len(unpinned)} unvollständige Pin(s) aufgehoben: {', '.join(unpinned)}")
    return problem


# ─── Einstiegspunkte ─────────────────────────────────────────────────────────

def build_initial_schedule(
    students: list[Student],
    teachers: list[Teacher],
    date_window: tuple[DateLike, DateLike],
    constraint_config: ConstraintConfigLike = None,
    holiday_predicate: Optional[HolidayPredicate] = None,
) -> ExamSchedule:
    """Legt pro Prüfling und Prüfungstag eine leere Prüfung an.

    Args:
        date_window: (erster Tag, letzter Tag), beide inklusive.
        holiday_predicate: Feiertage werden aus dem Fenster entfernt.

    Raises:
        InputError: leere Listen, nicht lesbare Daten, leeres Fenster.
    """
    if not students:
        raise InputError("Keine Prüflinge angegeben")
    if not teachers:
        raise InputError("Keine Prüfer angegeben")
    _unique_ids(students, "Prüfling")
    _unique_ids(teachers, "Prüfer")
    try:
        start, end = date_window
    except (TypeError, ValueError) as e:
        raise InputError(f"Datumsfenster muss (Start, Ende) sein: {date_window!r}") from e
    first, last = _as_date(start), _as_date(end)
    if last < first:
        raise InputError(f"Datumsfenster leer: {first} > {last}")

    is_holiday = holiday_predicate or (lambda _: False)
    dates = []
    day = first
    while day <= last:
        if not is_holiday(day):
            dates.append(day.isoformat())
        day += timedelta(days=1)
    if not dates:
        raise InputError(f"Keine Prüfungstage zwischen {first} und {last} (nur Feiertage)")

    assignments = []
    for s in students:
        exam_types = ("day1", "day2") if s.needs_day2 else ("day1",)
        for exam_type in exam_types:
            assignments.append(ExamAssignment(
                id=f"{s.id}_{exam_type}",
                student_id=s.id,
                exam_type=exam_type,
                subjects=s.subjects_for(exam_type),
            ))

    schedule = ExamSchedule(
        assignments=assignments,
        available_dates=dates,
        students=list(students),
        teachers=list(teachers),
        constraint_config=_constraint_config(constraint_config),
    )
    logger.info(f"Problem angelegt: {len(students)} Prüflinge, {len(assignments)} Prüfungen, "
                f"{len(dates)} Tage")
    return schedule


def solve(
    schedule: ExamSchedule,
    tier_config: Union[TierConfig, str, None] = None,
    *,
    config: Optional[EngineConfig] = None,
    seed: Optional[int] = None,
    progress_sink: Optional[ProgressSink] = None,
    holiday_predicate: Optional[HolidayPredicate] = None,
    cancel_event: Optional[threading.Event] = None,
) -> tuple[ExamSchedule, HardSoftScore]:
    """Eine Stufe blockierend lösen.

    Args:
        tier_config: TierConfig oder Stufenname (Standard: "standard").
        seed: überschreibt config.solver.seed.

    Raises:
        InputError: ungültige Eingabe.
        NoSolutionError: die Stufe hat keinen verwertbaren Plan geliefert.
    """
    config = config or EngineConfig()
    if tier_config is None or isinstance(tier_config, str):
        try:
            tier = config.solver.tier(tier_config or "standard")
        except KeyError as e:
            raise InputError(str(e)) from e
    else:
        tier = tier_config
    problem = _prepare(schedule)
    ctx = SolvingContext(config, problem.constraint_config, holiday_predicate, cancel_event)
    dispatcher = ProgressDispatcher(progress_sink, config.solver.progress.max_pending_events)
    try:
        result = TierRunner(config, ctx, dispatcher).run(
            problem, tier, seed if seed is not None else config.solver.seed
        )
    finally:
        dispatcher.close()
    if result.schedule is None:
        from analysis.diagnostics import FeasibilityAnalyzer
        raise NoSolutionError(
            f"Stufe {tier.name} ohne Ergebnis: {result.error}",
            FeasibilityAnalyzer(ctx).analyze(problem),
        )
    return result.schedule, result.score


def solve_adaptive(
    schedule: ExamSchedule,
    constraint_config: ConstraintConfigLike = None,
    progress_sink: Optional[ProgressSink] = None,
    *,
    config: Optional[EngineConfig] = None,
    holiday_predicate: Optional[HolidayPredicate] = None,
    cancel_event: Optional[threading.Event] = None,
) -> tuple[ExamSchedule, HardSoftScore, str]:
    """flash → standard → precise, eskaliert nur bei unzureichender Qualität.

    Returns:
        (bester Plan, Score, Name der zuletzt ausgeführten Stufe)
    """
    config = config or EngineConfig()
    problem = _prepare(schedule, constraint_config)
    ctx = SolvingContext(config, problem.constraint_config, holiday_predicate, cancel_event)
    dispatcher = ProgressDispatcher(progress_sink, config.solver.progress.max_pending_events)
    try:
        result = AdaptiveSolvingOrchestrator(config, ctx, dispatcher).solve(problem)
    finally:
        dispatcher.close()
    return result.schedule, result.score, result.tier_reached


def score_only(
    schedule: ExamSchedule,
    *,
    config: Optional[EngineConfig] = None,
    holiday_predicate: Optional[HolidayPredicate] = None,
) -> tuple[int, int, list[ConstraintViolation]]:
    """(hard, soft, Verletzungen) des Plans in seinem aktuellen Zustand."""
    validate_schedule(schedule)
    ctx = SolvingContext(config, schedule.constraint_config, holiday_predicate)
    result = ScoringEngine(ctx).score(schedule)
    return result.hard, result.soft, result.violations
