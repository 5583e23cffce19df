"""ScoringEngine (vollständige Bewertung) und ScoreDirector (inkrementell).

Beide werten dieselben Constraint-Objekte über dieselben Gruppen aus:
der ScoringEngine einmal über alle Gruppen, der ScoreDirector hält pro
(scope, key) den letzten Beitrag vor und bewertet nach einem Zug nur die
betroffenen Gruppen neu.
"""

import logging
from typing import Iterable, Iterator, Literal, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table
from rich import box

from models.exam_assignment import ExamAssignment, PLANNING_FIELDS
from models.exam_schedule import ExamSchedule, HardSoftScore
from solver.constraints import Constraint, ScoringView, build_constraints
from solver.context import SolvingContext

logger = logging.getLogger(__name__)

# (Zuweisung, Feldname, neuer Wert)
Change = tuple[ExamAssignment, str, Optional[str]]
GroupKey = tuple[str, str]


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class ConstraintViolation(BaseModel):
    """Ein Malus-Treffer mit betroffener Entität (Prüfling, Prüfer, Datum, Prüfung)."""

    constraint_id: str
    hard: bool
    score_impact: int          # negativ
    entity: str
    description: str


class ConstraintTotal(BaseModel):
    """Summe eines Constraints über den ganzen Plan (auch Boni)."""

    constraint_id: str
    description: str
    hard: bool
    direction: Literal["penalize", "reward"]
    matches: int
    score: int


class ScoreResult(BaseModel):
    score: HardSoftScore
    violations: list[ConstraintViolation] = []
    totals: list[ConstraintTotal] = []

    @property
    def hard(self) -> int:
        return self.score.hard

    @property
    def soft(self) -> int:
        return self.score.soft

    def hard_violations(self) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.hard]

    def violations_of(self, constraint_id: str) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.constraint_id == constraint_id]

    def print_rich(self, console: Optional[Console] = None, limit: int = 30) -> None:
        """Score und die ersten `limit` Verletzungen als Tabelle."""
        console = console or Console()
        style = "green" if self.score.is_feasible else "red"
        console.print(f"\n[bold]Score:[/bold] [{style}]{self.score}[/{style}]")
        if not self.violations:
            console.print("[green]Keine Verletzungen.[/green]")
            return
        table = Table(title="Verletzungen", box=box.SIMPLE_HEAVY)
        table.add_column("ID", style="bold")
        table.add_column("Art")
        table.add_column("Score", justify="right")
        table.add_column("Betrifft")
        table.add_column("Beschreibung")
        for v in self.violations[:limit]:
            kind = "[red]hart[/red]" if v.hard else "[yellow]weich[/yellow]"
            table.add_row(v.constraint_id, kind, str(v.score_impact), v.entity, v.description)
        console.print(table)
        if len(self.violations) > limit:
            console.print(f"[dim]... und {len(self.violations) - limit} weitere[/dim]")


# ─── Gruppierung ─────────────────────────────────────────────────────────────

def iter_groups(
    schedule: ExamSchedule, scope: str
) -> Iterator[tuple[str, list[ExamAssignment]]]:
    """Gruppen eines Scopes in deterministischer Reihenfolge."""
    if scope == "assignment":
        for a in schedule.assignments:
            yield a.id, [a]
    elif scope == "date":
        by_date: dict[str, list[ExamAssignment]] = {}
        for a in schedule.assignments:
            if a.exam_date is not None:
                by_date.setdefault(a.exam_date, []).append(a)
        for key in sorted(by_date):
            yield key, by_date[key]
    elif scope == "student":
        by_student: dict[str, list[ExamAssignment]] = {}
        for a in schedule.assignments:
            by_student.setdefault(a.student_id, []).append(a)
        for s in schedule.students:
            if s.id in by_student:
                yield s.id, by_student[s.id]
    elif scope == "teacher":
        by_teacher: dict[str, list[ExamAssignment]] = {}
        for a in schedule.assignments:
            for tid in sorted(a.teacher_ids()):
                by_teacher.setdefault(tid, []).append(a)
        for t in schedule.teachers:
            if t.id in by_teacher:
                yield t.id, by_teacher[t.id]
    else:
        raise ValueError(f"Unbekannter Scope: {scope}")


# ─── Vollständige Bewertung ──────────────────────────────────────────────────

class ScoringEngine:
    """Bewertet einen Plan vollständig gegen den Constraint-Katalog."""

    def __init__(self, ctx: SolvingContext, constraints: Optional[list[Constraint]] = None) -> None:
        self.ctx = ctx
        self.constraints = constraints if constraints is not None else build_constraints(
            ctx.constraint_config
        )

    def score(self, schedule: ExamSchedule, explain: bool = True) -> ScoreResult:
        view = ScoringView(schedule, self.ctx)
        hard = soft = 0
        violations: list[ConstraintViolation] = []
        totals: list[ConstraintTotal] = []

        for c in self.constraints:
            count = value = 0
            for key, group in iter_groups(schedule, c.scope):
                for m in c.evaluate_group(key, group, view, explain=explain):
                    impact = c.impact(m)
                    count += 1
                    value += impact
                    if c.direction == "penalize" and explain:
                        violations.append(ConstraintViolation(
                            constraint_id=c.id,
                            hard=c.hard,
                            score_impact=impact,
                            entity=m.entity,
                            description=m.description,
                        ))
            if c.hard:
                hard += value
            else:
                soft += value
            if explain and count:
                totals.append(ConstraintTotal(
                    constraint_id=c.id, description=c.description, hard=c.hard,
                    direction=c.direction, matches=count, score=value,
                ))

        return ScoreResult(score=HardSoftScore(hard, soft), violations=violations, totals=totals)

    def calculate(self, schedule: ExamSchedule) -> HardSoftScore:
        """Nur der Score, ohne Beschreibungen."""
        return self.score(schedule, explain=False).score


# ─── Inkrementelle Bewertung ─────────────────────────────────────────────────

class ScoreDirector:
    """Hält den Score eines Plans aktuell, während Züge angewendet werden.

    Alle Änderungen an Planungsvariablen müssen über apply() laufen, sonst
    stimmen Cache und Indizes nicht mehr.
    """

    def __init__(
        self,
        schedule: ExamSchedule,
        ctx: SolvingContext,
        constraints: Optional[list[Constraint]] = None,
    ) -> None:
        self.schedule = schedule
        self.ctx = ctx
        self.constraints = constraints if constraints is not None else build_constraints(
            ctx.constraint_config
        )
        self.view = ScoringView(schedule, ctx)
        self._by_scope: dict[str, list[Constraint]] = {}
        for c in self.constraints:
            self._by_scope.setdefault(c.scope, []).append(c)
        self.calculation_count = 0
        self.recompute()

    # ─── Aufbau ───

    def recompute(self) -> HardSoftScore:
        """Alle Indizes und Gruppenbeiträge neu aufbauen."""
        self._assignments = {a.id: a for a in self.schedule.assignments}
        self._position = {a.id: i for i, a in enumerate(self.schedule.assignments)}
        self._by_date: dict[str, set[str]] = {}
        self._by_teacher: dict[str, set[str]] = {}
        self._by_student: dict[str, list[str]] = {}
        for a in self.schedule.assignments:
            self._by_student.setdefault(a.student_id, []).append(a.id)
            self._index(a)
        self._cache: dict[GroupKey, tuple[int, int]] = {}
        self._hard = self._soft = 0
        keys: set[GroupKey] = set()
        for scope in self._by_scope:
            keys.update(self._all_keys(scope))
        for key in keys:
            self._store(key)
        return self.score

    def _all_keys(self, scope: str) -> Iterable[GroupKey]:
        if scope == "assignment":
            return (("assignment", aid) for aid in self._assignments)
        if scope == "date":
            return (("date", d) for d in self._by_date)
        if scope == "student":
            return (("student", s) for s in self._by_student)
        return (("teacher", t) for t in self._by_teacher)

    def _index(self, a: ExamAssignment) -> None:
        if a.exam_date is not None:
            self._by_date.setdefault(a.exam_date, set()).add(a.id)
        for tid in a.teacher_ids():
            self._by_teacher.setdefault(tid, set()).add(a.id)

    def _unindex(self, a: ExamAssignment) -> None:
        if a.exam_date is not None:
            ids = self._by_date.get(a.exam_date)
            if ids is not None:
                ids.discard(a.id)
                if not ids:
                    del self._by_date[a.exam_date]
        for tid in a.teacher_ids():
            ids = self._by_teacher.get(tid)
            if ids is not None:
                ids.discard(a.id)
                if not ids:
                    del self._by_teacher[tid]

    # ─── Gruppen ───

    def _group(self, key: GroupKey) -> list[ExamAssignment]:
        scope, value = key
        if scope == "assignment":
            ids = [value]
        elif scope == "date":
            ids = self._by_date.get(value, ())
        elif scope == "student":
            ids = self._by_student.get(value, ())
        else:
            ids = self._by_teacher.get(value, ())
        return [self._assignments[i] for i in sorted(ids, key=self._position.__getitem__)]

    def _evaluate(self, key: GroupKey) -> tuple[int, int]:
        group = self._group(key)
        if not group:
            return 0, 0
        hard = soft = 0
        for c in self._by_scope.get(key[0], ()):
            for m in c.evaluate_group(key[1], group, self.view):
                if c.hard:
                    hard += c.impact(m)
                else:
                    soft += c.impact(m)
        self.calculation_count += 1
        return hard, soft

    def _store(self, key: GroupKey) -> None:
        hard, soft = self._evaluate(key)
        if hard or soft:
            self._cache[key] = (hard, soft)
        self._hard += hard
        self._soft += soft

    def _drop(self, key: GroupKey) -> None:
        hard, soft = self._cache.pop(key, (0, 0))
        self._hard -= hard
        self._soft -= soft

    def _affected(self, a: ExamAssignment, field: str) -> set[GroupKey]:
        keys: set[GroupKey] = {("assignment", a.id), ("student", a.student_id)}
        if a.exam_date is not None:
            keys.add(("date", a.exam_date))
        if field == "exam_date":
            keys.update(("teacher", tid) for tid in a.teacher_ids())
        else:
            tid = getattr(a, field)
            if tid:
                keys.add(("teacher", tid))
        return {k for k in keys if k[0] in self._by_scope}

    def assignments_on(self, date_text: str) -> list[ExamAssignment]:
        return self._group(("date", date_text))

    # ─── Züge ───

    @property
    def score(self) -> HardSoftScore:
        return HardSoftScore(self._hard, self._soft)

    def apply(self, changes: list[Change]) -> list[Change]:
        """Wendet Änderungen an; liefert die Umkehr-Änderungen."""
        keys: set[GroupKey] = set()
        for a, field, _ in changes:
            keys |= self._affected(a, field)
        for key in keys:
            self._drop(key)

        undo: list[Change] = []
        for a, field, value in changes:
            if field not in PLANNING_FIELDS:
                raise ValueError(f"Kein Planungsfeld: {field}")
            undo.append((a, field, getattr(a, field)))
            self._unindex(a)
            setattr(a, field, value)
            self._index(a)

        after: set[GroupKey] = set()
        for a, field, _ in changes:
            after |= self._affected(a, field)
        for key in after - keys:
            self._drop(key)
        for key in keys | after:
            self._store(key)
        undo.reverse()
        return undo

    def evaluate(self, changes: list[Change]) -> HardSoftScore:
        """Score nach den Änderungen, ohne sie zu behalten."""
        undo = self.apply(changes)
        result = self.score
        self.apply(undo)
        return result
