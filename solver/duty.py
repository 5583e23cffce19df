"""Dienstrotation: Datum → Tagdienst / Nachtdienst / Ruhetag 1 / Ruhetag 2.

Die vier Gruppen rotieren in einem festen 4-Tage-Zyklus ab einem Ankerdatum.
Die Verwaltung ist nie Teil der Rotation.
"""

import re
from datetime import date
from typing import Optional

from config.schema import DutyRotationConfig
from models.duty_schedule import DutySchedule
from solver.errors import InputError

_DATE_RE = re.compile(r"^\s*(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})\s*$")


def parse_exam_date(text: str) -> date:
    """Liest 'YYYY-MM-DD', 'YYYY/M/D' oder 'YYYY.M.D'.

    Raises:
        InputError: wenn der Text kein gültiges Datum ist.
    """
    m = _DATE_RE.match(text or "")
    if not m:
        raise InputError(f"Ungültiges Datum: {text!r}")
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise InputError(f"Ungültiges Datum: {text!r} ({e})") from e


class DateShiftCalculator:
    """Berechnet den Dienstplan eines Datums, memoisiert pro Solver-Lauf.

    Jede Instanz hat ihren eigenen Cache – es gibt keinen prozessweiten
    Zustand. Pro Lauf wird eine neue Instanz im SolvingContext angelegt.
    """

    def __init__(self, rotation: Optional[DutyRotationConfig] = None) -> None:
        self.rotation = rotation or DutyRotationConfig()
        self._by_text: dict[str, Optional[DutySchedule]] = {}
        self._dates: dict[str, Optional[date]] = {}

    def parse(self, text: Optional[str]) -> Optional[date]:
        """Memoisiertes Parsen; None bei fehlendem oder ungültigem Datum."""
        if text is None:
            return None
        if text not in self._dates:
            try:
                self._dates[text] = parse_exam_date(text)
            except InputError:
                self._dates[text] = None
        return self._dates[text]

    def position(self, day: date) -> int:
        """Position im 4-Tage-Zyklus (0..3), auch vor dem Ankerdatum."""
        return (day - self.rotation.anchor_date).days % 4

    def for_date(self, day: date) -> DutySchedule:
        """Dienstplan für ein date-Objekt (nicht memoisiert)."""
        teams = self.rotation.teams
        p = self.position(day)
        night = teams[p]
        day_shift = teams[(p + 1) % 4]
        rest = [t for t in teams if t not in (night, day_shift)]
        return DutySchedule(
            date=day.isoformat(),
            day_shift=day_shift,
            night_shift=night,
            rest1=rest[0],
            rest2=rest[1],
        )

    def team_for(self, text: Optional[str]) -> Optional[DutySchedule]:
        """Dienstplan für einen Datums-String; None wenn nicht lesbar."""
        if text is None:
            return None
        if text not in self._by_text:
            day = self.parse(text)
            self._by_text[text] = self.for_date(day) if day else None
        return self._by_text[text]

    def cache_size(self) -> int:
        return len(self._by_text)
