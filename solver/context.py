"""SolvingContext: gesamter veränderlicher Zustand EINES Solver-Laufs.

Dienstplan-Memo, Abteilungs-Cache, Konfiguration und Abbruch-Flag leben hier
und werden explizit an Scoring und Suche übergeben. Parallele Läufe erhalten
je einen eigenen Kontext und teilen nichts.
"""

import threading
from datetime import date
from typing import Callable, Optional

from config.schema import ConstraintConfig, EngineConfig
from models.duty_schedule import ShiftStatus
from models.teacher import Teacher
from solver.departments import DepartmentNormalizer
from solver.duty import DateShiftCalculator

HolidayPredicate = Callable[[date], bool]

# Prioritätspunkte nach Dienststatus (SC2/SC4/SC6/SC8)
SHIFT_PRIORITY: dict[Optional[str], int] = {
    "night": 100,
    "rest1": 80,
    "rest2": 60,
    "admin": 40,
}


def _no_holidays(_: date) -> bool:
    return False


class SolvingContext:
    """Kontext eines Laufs (nicht zwischen Läufen wiederverwenden)."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        constraint_config: Optional[ConstraintConfig] = None,
        holiday_predicate: Optional[HolidayPredicate] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.constraint_config = constraint_config or self.config.constraints
        self.duty = DateShiftCalculator(self.config.duty)
        self.departments = DepartmentNormalizer(self.config.duty.interchange_pairs)
        self.holiday_predicate = holiday_predicate or _no_holidays
        self.cancel_event = cancel_event or threading.Event()
        self._holidays: dict[str, bool] = {}

    # ─── Abbruch ───

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    # ─── Kalender ───

    def is_holiday(self, text: Optional[str]) -> bool:
        if text is None:
            return False
        if text not in self._holidays:
            day = self.duty.parse(text)
            self._holidays[text] = bool(day and self.holiday_predicate(day))
        return self._holidays[text]

    def is_weekend(self, text: Optional[str]) -> bool:
        day = self.duty.parse(text)
        return day is not None and day.weekday() >= 5

    # ─── Prüfer ───

    def is_admin(self, teacher: Teacher) -> bool:
        return teacher.is_admin(self.config.duty.admin_team_names)

    def shift_status(self, teacher: Teacher, text: Optional[str]) -> Optional[ShiftStatus]:
        """Dienststatus am Datum; None für Verwaltung oder ungültiges Datum."""
        if self.is_admin(teacher):
            return None
        duty = self.duty.team_for(text)
        return duty.status_of(teacher.team) if duty else None

    def shift_priority(self, teacher: Teacher, text: Optional[str]) -> int:
        """Prioritätspunkte: Nacht 100, Ruhetag 1 80, Ruhetag 2 60, Verwaltung 40."""
        if self.is_admin(teacher):
            return SHIFT_PRIORITY["admin"]
        return SHIFT_PRIORITY.get(self.shift_status(teacher, text), 0)
