"""Planungs-Entität: eine Prüfung (ein Prüfling an einem Prüfungstag)."""

from typing import Literal, Optional

from pydantic import BaseModel

ExamType = Literal["day1", "day2"]

# Planungsvariablen in fester Reihenfolge
ROLE_FIELDS = ("examiner1_id", "examiner2_id", "backup_examiner_id")
PLANNING_FIELDS = ("exam_date",) + ROLE_FIELDS

ROLE_LABELS = {
    "examiner1_id": "Prüfer 1",
    "examiner2_id": "Prüfer 2",
    "backup_examiner_id": "Ersatzprüfer",
}


class ExamAssignment(BaseModel):
    """Eine Prüfung mit Datum und drei Prüfer-Rollen.

    student_id, exam_type und subjects sind fest; Datum und Prüfer werden
    vom Solver belegt. Gepinnte Zuweisungen werden nie verändert.
    """

    id: str
    student_id: str
    exam_type: ExamType
    subjects: list[str] = []
    exam_date: Optional[str] = None          # "YYYY-MM-DD"
    examiner1_id: Optional[str] = None       # gleiche Abteilung wie Prüfling
    examiner2_id: Optional[str] = None       # fremde Abteilung
    backup_examiner_id: Optional[str] = None
    pinned: bool = False

    def is_complete(self) -> bool:
        """Datum und alle drei Rollen belegt."""
        return all(getattr(self, f) for f in PLANNING_FIELDS)

    def snapshot(self) -> tuple:
        """(Datum, Prüfer 1, Prüfer 2, Ersatz) – Vergleichswert für Pins."""
        return tuple(getattr(self, f) for f in PLANNING_FIELDS)

    def restore(self, snapshot: tuple) -> None:
        for f, v in zip(PLANNING_FIELDS, snapshot):
            setattr(self, f, v)

    def role_teachers(self) -> list[tuple[str, str]]:
        """Belegte Rollen als (Feldname, Prüfer-ID)."""
        return [(f, getattr(self, f)) for f in ROLE_FIELDS if getattr(self, f)]

    def teacher_ids(self) -> set[str]:
        return {tid for _, tid in self.role_teachers()}
