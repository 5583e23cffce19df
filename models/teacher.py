"""Datenmodell für einen Prüfer (Pydantic v2)."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# Gruppenbezeichnungen der Verwaltung (nicht in der Dienstrotation)
ADMIN_TEAM_NAMES = ("无", "行政班")


class UnavailablePeriod(BaseModel):
    """Abwesenheitszeitraum (Start und Ende inklusive)."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    reason: str = ""

    @model_validator(mode='after')
    def _check_order(self):
        if self.end_date < self.start_date:
            raise ValueError(
                f"Abwesenheit endet ({self.end_date}) vor Beginn ({self.start_date})"
            )
        return self

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Teacher(BaseModel):
    """Repräsentiert einen Prüfer. Während des Solver-Laufs unveränderlich."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    department: Optional[str] = None            # Rohbezeichnung ("三室", "第3科室", ...)
    team: Optional[str] = None                  # "一组".."四组"; leer/"无"/"行政班" = Verwaltung
    unavailable_periods: list[UnavailablePeriod] = []

    @field_validator("team")
    @classmethod
    def _blank_team_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    def is_admin(self, admin_team_names=ADMIN_TEAM_NAMES) -> bool:
        """Verwaltungs-Prüfer: keine oder eine Verwaltungs-Gruppe."""
        return self.team is None or self.team in admin_team_names

    def is_unavailable_on(self, day: date) -> bool:
        """True wenn der Tag in einem Abwesenheitszeitraum liegt."""
        return any(p.covers(day) for p in self.unavailable_periods)
