"""PinManager – fixiert einzelne Prüfungen vor dem Solver-Lauf (Teil-Neuplanung).

Eine gepinnte Prüfung behält Datum, Prüfer 1, Prüfer 2 und Ersatzprüfer
exakt bei. Gepinnte Prüfungen mit fehlenden Feldern werden automatisch
entpinnt und normal neu geplant.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from models.exam_assignment import ExamAssignment, PLANNING_FIELDS
from models.exam_schedule import ExamSchedule
from solver.errors import InputError

logger = logging.getLogger(__name__)


class PinnedAssignment(BaseModel):
    """Eine fixierte Prüfung."""

    assignment_id: str           # z.B. "S001_day1"
    exam_date: Optional[str] = None
    examiner1_id: Optional[str] = None
    examiner2_id: Optional[str] = None
    backup_examiner_id: Optional[str] = None

    @classmethod
    def from_assignment(cls, a: ExamAssignment) -> "PinnedAssignment":
        return cls(assignment_id=a.id, **{f: getattr(a, f) for f in PLANNING_FIELDS})

    def snapshot(self) -> tuple:
        return tuple(getattr(self, f) for f in PLANNING_FIELDS)

    def is_complete(self) -> bool:
        return all(self.snapshot())


class PinManager:
    """Verwaltet gepinnte Prüfungen und wendet sie auf einen Plan an."""

    def __init__(self) -> None:
        self._pins: list[PinnedAssignment] = []

    def add_pin(self, pin: PinnedAssignment) -> None:
        """Fügt einen Pin hinzu. Ersetzt einen bestehenden Pin derselben Prüfung."""
        self._pins = [p for p in self._pins if p.assignment_id != pin.assignment_id]
        self._pins.append(pin)

    def remove_pin(self, assignment_id: str) -> bool:
        """Entfernt einen Pin. Gibt True zurück wenn ein Pin entfernt wurde."""
        before = len(self._pins)
        self._pins = [p for p in self._pins if p.assignment_id != assignment_id]
        return len(self._pins) < before

    def get_pins(self) -> list[PinnedAssignment]:
        return list(self._pins)

    def apply(self, schedule: ExamSchedule) -> list[str]:
        """Überträgt alle Pins auf den Plan und entpinnt unvollständige.

        Returns:
            IDs der automatisch entpinnten Prüfungen.

        Raises:
            InputError: Pin auf eine unbekannte Prüfung.
        """
        by_id = {a.id: a for a in schedule.assignments}
        for pin in self._pins:
            a = by_id.get(pin.assignment_id)
            if a is None:
                raise InputError(f"Pin auf unbekannte Prüfung: {pin.assignment_id}")
            a.restore(pin.snapshot())
            a.pinned = True
        return self.auto_unpin(schedule)

    # ─── Statische Helfer (auch ohne Pin-Datei nutzbar) ───

    @staticmethod
    def auto_unpin(schedule: ExamSchedule) -> list[str]:
        """Entpinnt gepinnte Prüfungen mit fehlendem Datum oder fehlender Rolle."""
        unpinned = []
        for a in schedule.assignments:
            if a.pinned and not a.is_complete():
                a.pinned = False
                unpinned.append(a.id)
                missing = [f for f in PLANNING_FIELDS if not getattr(a, f)]
                logger.warning(f"Pin von {a.id} aufgehoben, fehlende Felder: {', '.join(missing)}")
        return unpinned

    @staticmethod
    def snapshot(schedule: ExamSchedule) -> dict[str, tuple]:
        return {a.id: a.snapshot() for a in schedule.assignments if a.pinned}

    @staticmethod
    def verify(schedule: ExamSchedule, snapshot: dict[str, tuple]) -> list[str]:
        """IDs der gepinnten Prüfungen, die vom Snapshot abweichen."""
        by_id = {a.id: a for a in schedule.assignments}
        return [aid for aid, snap in snapshot.items()
                if aid not in by_id or by_id[aid].snapshot() != snap]

    @staticmethod
    def restore(schedule: ExamSchedule, snapshot: dict[str, tuple]) -> int:
        """Setzt abweichende gepinnte Prüfungen zurück; gibt die Anzahl zurück."""
        by_id = {a.id: a for a in schedule.assignments}
        restored = 0
        for aid, snap in snapshot.items():
            a = by_id.get(aid)
            if a is not None and a.snapshot() != snap:
                a.restore(snap)
                a.pinned = True
                restored += 1
        if restored:
            logger.error(f"{restored} gepinnte Prüfung(en) wurden verändert und zurückgesetzt")
        return restored

    # ─── Persistenz ───

    def save_json(self, path: Path) -> None:
        """Speichert alle Pins als JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = [p.model_dump() for p in self._pins]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def load_json(self, path: Path) -> None:
        """Lädt Pins aus einer JSON-Datei (überschreibt aktuelle Pins)."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Pin-Datei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._pins = [PinnedAssignment(**item) for item in data]

    def __len__(self) -> int:
        return len(self._pins)

    def __repr__(self) -> str:
        return f"PinManager({len(self._pins)} pins)"
