"""Abgeleiteter Dienstplan eines Tages (wird nie gespeichert)."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

ShiftStatus = Literal["day", "night", "rest1", "rest2"]


class DutySchedule(BaseModel):
    """Dienststatus der vier Gruppen an einem Datum."""

    model_config = ConfigDict(frozen=True)

    date: str          # ISO-Datum
    day_shift: str     # Tagdienst – darf nicht prüfen
    night_shift: str   # Nachtdienst – bevorzugte Prüfer
    rest1: str         # Ruhetag 1
    rest2: str         # Ruhetag 2

    def status_of(self, team: Optional[str]) -> Optional[ShiftStatus]:
        """Dienststatus einer Gruppe; None für Verwaltung/unbekannte Gruppen."""
        if team == self.day_shift:
            return "day"
        if team == self.night_shift:
            return "night"
        if team == self.rest1:
            return "rest1"
        if team == self.rest2:
            return "rest2"
        return None
