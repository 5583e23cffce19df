"""ExamSchedule: Lösungscontainer + lexikographischer Hard/Soft-Score (Pydantic v2)."""

import re
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field, PrivateAttr

from config.schema import ConstraintConfig
from models.exam_assignment import ExamAssignment
from models.student import Student
from models.teacher import Teacher


class HardSoftScore(NamedTuple):
    """Lexikographischer Score: erst hard, dann soft (Tupel-Vergleich)."""

    hard: int
    soft: int

    @property
    def is_feasible(self) -> bool:
        return self.hard >= 0

    def __str__(self) -> str:
        return f"{self.hard}hard/{self.soft}soft"

    @classmethod
    def parse(cls, text: str) -> "HardSoftScore":
        """Liest '0hard/-120soft'."""
        m = re.fullmatch(r"\s*(-?\d+)hard/(-?\d+)soft\s*", text)
        if not m:
            raise ValueError(f"Kein gültiger Score: {text!r}")
        return cls(int(m.group(1)), int(m.group(2)))


class ExamSchedule(BaseModel):
    """Vollständiges Planungsproblem bzw. dessen Lösung."""

    assignments: list[ExamAssignment]
    available_dates: list[str]                  # ISO-Daten, aufsteigend
    students: list[Student]
    teachers: list[Teacher]
    constraint_config: ConstraintConfig = Field(default_factory=ConstraintConfig)
    score: Optional[HardSoftScore] = None       # zuletzt berechneter Score

    _student_index: Optional[dict[str, Student]] = PrivateAttr(default=None)

    # ─── Lookups ───

    def student(self, student_id: str) -> Student:
        if self._student_index is None:
            self._student_index = {s.id: s for s in self.students}
        return self._student_index[student_id]

    def pinned_assignments(self) -> list[ExamAssignment]:
        return [a for a in self.assignments if a.pinned]

    # ─── Übersicht ───

    def summary(self) -> str:
        """Kurze Übersicht über das Problem."""
        two_day = sum(1 for s in self.students if s.needs_day2)
        lines = [
            f"Prüflinge: {len(self.students)} ({two_day} zweitägig)",
            f"Prüfer: {len(self.teachers)}",
            f"Prüfungen: {len(self.assignments)} "
            f"({len(self.pinned_assignments())} gepinnt)",
            f"Termine: {self.available_dates[0]} – {self.available_dates[-1]} "
            f"({len(self.available_dates)} Tage)" if self.available_dates else "",
            f"Score: {self.score}" if self.score is not None else "",
        ]
        return "\n".join(l for l in lines if l)

    # ─── Persistenz ───

    def save_json(self, path: Path) -> None:
        """Speichert Problem/Lösung als JSON-Datei."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "ExamSchedule":
        """Lädt Problem/Lösung aus einer JSON-Datei."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Plan nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
