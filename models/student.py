"""Datenmodell für einen Prüfling (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Student(BaseModel):
    """Ein Prüfling mit ein- oder zweitägiger Prüfung."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    department: str                                   # Rohbezeichnung der Abteilung
    team: Optional[str] = None                        # Dienstgruppe ("一组".."四组")
    exam_days: int = Field(2, ge=1, le=2)             # 1 oder 2 Prüfungstage
    # Empfohlene Abteilungen (aus der Einsatzplanung der Abteilungen)
    recommended_examiner1_dept: Optional[str] = None
    recommended_examiner2_dept: Optional[str] = None
    recommended_backup_dept: Optional[str] = None
    # Optionale Wunschtermine (Tag 1 / Tag 2)
    recommended_exam_date1: Optional[str] = None
    recommended_exam_date2: Optional[str] = None
    day1_subjects: list[str] = []
    day2_subjects: list[str] = []

    @field_validator(
        "team", "recommended_examiner1_dept", "recommended_examiner2_dept",
        "recommended_backup_dept", "recommended_exam_date1", "recommended_exam_date2",
    )
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def needs_day2(self) -> bool:
        return self.exam_days == 2

    @property
    def recommended_pool(self) -> list[str]:
        """Empfehlungs-Pool für Prüfer 2 und Ersatzprüfer (Rohwerte)."""
        return [d for d in (self.recommended_examiner1_dept,
                            self.recommended_examiner2_dept) if d]

    def examiner2_recommended_dept(self, exam_type: str) -> Optional[str]:
        """Tagesspezifische Empfehlung für Prüfer 2: day1 → Empf. 1, day2 → Empf. 2."""
        if exam_type == "day1":
            return self.recommended_examiner1_dept
        if exam_type == "day2":
            return self.recommended_examiner2_dept
        return None

    def subjects_for(self, exam_type: str) -> list[str]:
        return list(self.day1_subjects if exam_type == "day1" else self.day2_subjects)

    @property
    def constraint_level(self) -> int:
        """Wie stark die Empfehlungen die Auswahl einschränken (0..6)."""
        level = 0
        if self.recommended_examiner1_dept:
            level += 3
        if self.recommended_examiner2_dept:
            level += 2
        if self.recommended_backup_dept:
            level += 1
        return level
