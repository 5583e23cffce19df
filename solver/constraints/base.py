"""Gemeinsame Schnittstelle aller Constraints + Lese-Sicht auf den Plan.

Jeder Constraint hat eine ID, ein Gewicht, eine Richtung (Malus/Bonus) und
einen Geltungsbereich (scope). Der Scope bestimmt, nach welchem Schlüssel
die Zuweisungen gruppiert werden – und damit, welche Gruppen nach einem
Zug neu bewertet werden müssen:

  assignment  eine Prüfung
  date        alle Prüfungen eines Datums
  student     alle Prüfungen eines Prüflings
  teacher     alle Prüfungen, in denen ein Prüfer eine Rolle hat
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Literal, NamedTuple, Optional

from config.defaults import CONSTRAINT_CATALOG
from config.schema import ConstraintConfig
from models.exam_assignment import ExamAssignment
from models.exam_schedule import ExamSchedule
from models.student import Student
from models.teacher import Teacher
from solver.context import SolvingContext

Scope = Literal["assignment", "date", "student", "teacher"]


class ConstraintMatch(NamedTuple):
    """Ein Treffer: Gewicht × factor, positiv gemeint (Richtung am Constraint)."""

    constraint_id: str
    factor: float
    entity: str
    description: str


class Recommendation(NamedTuple):
    """Normalisierte Empfehlungen eines Prüflings."""

    examiner1: Optional[str]      # Empf. 1 (Ideal für Prüfer 2)
    examiner2: Optional[str]      # Empf. 2 (Ideal für Ersatzprüfer)
    backup: Optional[str]
    pool: frozenset


class ScoringView:
    """Lese-Sicht auf Plan + Kontext mit vorberechneten Lookups."""

    def __init__(self, schedule: ExamSchedule, ctx: SolvingContext) -> None:
        self.schedule = schedule
        self.ctx = ctx
        norm = ctx.departments
        self._teachers: dict[str, Teacher] = {t.id: t for t in schedule.teachers}
        self._students: dict[str, Student] = {s.id: s for s in schedule.students}
        self._teacher_dept = {t.id: norm(t.department) for t in schedule.teachers}
        self._teacher_admin = {t.id: ctx.is_admin(t) for t in schedule.teachers}
        self._student_dept = {s.id: norm(s.department) for s in schedule.students}
        self._recommendations: dict[str, Recommendation] = {}
        for s in schedule.students:
            self._recommendations[s.id] = Recommendation(
                norm(s.recommended_examiner1_dept),
                norm(s.recommended_examiner2_dept),
                norm(s.recommended_backup_dept),
                frozenset(d for d in map(norm, s.recommended_pool) if d),
            )
        self._priority: dict[tuple[str, str], int] = {}

    # ─── Entitäten ───

    def student(self, student_id: str) -> Student:
        return self._students[student_id]

    def dept(self, teacher_id: Optional[str]) -> Optional[str]:
        return self._teacher_dept.get(teacher_id) if teacher_id else None

    def student_dept(self, student_id: str) -> Optional[str]:
        return self._student_dept.get(student_id)

    def is_admin(self, teacher_id: Optional[str]) -> bool:
        return bool(teacher_id) and self._teacher_admin[teacher_id]

    def recommendation(self, student_id: str) -> Recommendation:
        return self._recommendations[student_id]

    def examiner2_wanted(self, a: ExamAssignment) -> Optional[str]:
        """Tagesspezifisch empfohlene Abteilung für Prüfer 2 (normalisiert)."""
        student = self._students[a.student_id]
        return self.ctx.departments(student.examiner2_recommended_dept(a.exam_type))

    def name(self, teacher_id: Optional[str]) -> str:
        if not teacher_id:
            return "–"
        t = self._teachers.get(teacher_id)
        return f"{t.name} ({teacher_id})" if t else teacher_id

    # ─── Kalender / Dienst ───

    def date(self, text: Optional[str]) -> Optional[date]:
        return self.ctx.duty.parse(text)

    def status(self, teacher_id: Optional[str], text: Optional[str]) -> Optional[str]:
        if not teacher_id:
            return None
        return self.ctx.shift_status(self._teachers[teacher_id], text)

    def priority(self, teacher_id: Optional[str], text: Optional[str]) -> int:
        if not teacher_id or text is None:
            return 0
        key = (teacher_id, text)
        if key not in self._priority:
            self._priority[key] = self.ctx.shift_priority(self._teachers[teacher_id], text)
        return self._priority[key]

    def unavailable(self, teacher_id: Optional[str], text: Optional[str]) -> bool:
        day = self.date(text)
        if not teacher_id or day is None:
            return False
        return self._teachers[teacher_id].is_unavailable_on(day)


class Constraint(ABC):
    """Basisklasse: ID, Gewicht, Richtung, Scope, Bewertung pro Gruppe."""

    id: str = ""
    scope: Scope = "assignment"

    def __init__(self, config: ConstraintConfig) -> None:
        spec = CONSTRAINT_CATALOG[self.id]
        self.hard = spec.hard
        self.direction = spec.direction
        self.description = spec.description
        self.enabled = config.is_enabled(self.id)
        self.weight = config.weight(self.id)

    @abstractmethod
    def evaluate_group(
        self,
        key: str,
        assignments: list[ExamAssignment],
        view: ScoringView,
        explain: bool = False,
    ) -> list[ConstraintMatch]:
        """Bewertet eine Gruppe; Beschreibungen nur wenn explain=True."""

    def impact(self, match: ConstraintMatch) -> int:
        """Vorzeichenbehafteter Score-Beitrag eines Treffers."""
        value = int(round(self.weight * match.factor))
        return -value if self.direction == "penalize" else value

    def match(self, factor: float, entity: str, description: str = "") -> ConstraintMatch:
        return ConstraintMatch(self.id, factor, entity, description)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id}, weight={self.weight}, scope={self.scope})"
