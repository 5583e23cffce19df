"""Eingabeformat eines Planungsproblems (vor dem Anlegen der Prüfungen)."""

from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from models.student import Student
from models.teacher import Teacher


class ProblemInput(BaseModel):
    """Prüflinge, Prüfer, Datumsfenster und Constraint-Einstellungen."""

    students: list[Student]
    teachers: list[Teacher]
    start_date: date
    end_date: date
    # {Constraint-ID: {enabled, weight}}; fehlende IDs = Katalog-Default
    constraints: dict = Field(default_factory=dict)

    def to_schedule(self, holiday_predicate=None):
        """Legt den ExamSchedule mit leeren Prüfungen an."""
        from solver.api import build_initial_schedule
        return build_initial_schedule(
            self.students, self.teachers, (self.start_date, self.end_date),
            self.constraints, holiday_predicate,
        )

    def save_json(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "ProblemInput":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Problemdatei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())

