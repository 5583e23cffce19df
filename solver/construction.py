"""Konstruktionsheuristik: greedy Erstbelegung vor der lokalen Suche."""

import logging
from datetime import timedelta
from typing import Optional

from models.exam_assignment import ExamAssignment, ROLE_FIELDS
from models.exam_schedule import HardSoftScore
from solver.moves import MoveSelector
from solver.scoring import Change, ScoreDirector

logger = logging.getLogger(__name__)


class ConstructionHeuristic:
    """Belegt alle nicht gepinnten Zuweisungen der Schwierigkeit nach.

    Reihenfolge: stärker eingeschränkte Empfehlungen zuerst, Tag 2 vor Tag 1,
    bereits datierte Zuweisungen zuerst, dann Prüflings-ID. Das Datumspaar
    eines Prüflings wird gemeinsam gewählt (Wunschtermine bevorzugt), danach
    jede Rolle mit dem besten Kandidaten unter dem aktuellen Teilplan.
    """

    def __init__(self, director: ScoreDirector, selector: MoveSelector) -> None:
        self.director = director
        self.selector = selector
        self.schedule = director.schedule
        self.view = director.view
        self._by_day = {}
        for text in self.schedule.available_dates:
            day = self.view.date(text)
            if day is not None:
                self._by_day[day] = text
        self._siblings: dict[str, dict[str, ExamAssignment]] = {}
        for a in self.schedule.assignments:
            self._siblings.setdefault(a.student_id, {})[a.exam_type] = a

    def difficulty_key(self, a: ExamAssignment) -> tuple:
        student = self.view.student(a.student_id)
        return (
            -student.constraint_level,
            0 if a.exam_type == "day2" else 1,
            0 if a.exam_date is not None else 1,
            a.student_id,
        )

    def run(self) -> HardSoftScore:
        todo = sorted(
            (a for a in self.schedule.assignments if not a.pinned),
            key=self.difficulty_key,
        )
        for a in todo:
            if a.exam_date is None:
                self._place_dates(a)
            for role in ROLE_FIELDS:
                if getattr(a, role) is None:
                    self._place_role(a, role)
        logger.debug(f"Konstruktion fertig: {len(todo)} Zuweisungen, Score {self.director.score}")
        return self.director.score

    # ─── Daten ───

    def _shift(self, text: str, days: int) -> Optional[str]:
        day = self.view.date(text)
        if day is None:
            return None
        return self._by_day.get(day + timedelta(days=days))

    def _available(self, text: Optional[str]) -> Optional[str]:
        day = self.view.date(text)
        return self._by_day.get(day) if day is not None else None

    def _date_options(self, a: ExamAssignment) -> list[list[Change]]:
        """Mögliche Datumsbelegungen (Wunschtermine zuerst)."""
        student = self.view.student(a.student_id)
        siblings = self._siblings[a.student_id]
        partner = siblings.get("day2" if a.exam_type == "day1" else "day1")
        offset = 1 if a.exam_type == "day1" else -1

        if partner is None:
            wanted = self._available(student.recommended_exam_date1)
            dates = ([wanted] if wanted else []) + list(self.schedule.available_dates)
            return [[(a, "exam_date", d)] for d in dates]

        if partner.exam_date is not None or partner.pinned:
            # Partner steht fest: nur der passende Nachbartag kommt in Frage
            target = self._shift(partner.exam_date, -offset) if partner.exam_date else None
            if target is not None:
                return [[(a, "exam_date", target)]]
            return [[(a, "exam_date", d)] for d in self.schedule.available_dates]

        day1, day2 = siblings["day1"], siblings["day2"]
        options: list[list[Change]] = []
        wanted1 = self._available(student.recommended_exam_date1)
        wanted2 = self._available(student.recommended_exam_date2)
        if wanted1 and wanted2 and self._shift(wanted1, 1) == wanted2:
            options.append([(day1, "exam_date", wanted1), (day2, "exam_date", wanted2)])
        for first in self.schedule.available_dates:
            second = self._shift(first, 1)
            if second is not None:
                options.append([(day1, "exam_date", first), (day2, "exam_date", second)])
        if not options:
            # Keine zwei aufeinanderfolgenden Tage verfügbar
            logger.warning(f"Kein Datumspaar (D, D+1) für Prüfling {a.student_id}")
            options = [[(day1, "exam_date", d), (day2, "exam_date", d)]
                       for d in self.schedule.available_dates]
        return options

    def _place_dates(self, a: ExamAssignment) -> None:
        options = self._date_options(a)
        if not options:
            return
        best = max(options, key=self.director.evaluate)
        self.director.apply(best)

    # ─── Rollen ───

    def _place_role(self, a: ExamAssignment, role: str) -> None:
        best_tid: Optional[str] = None
        best_score: Optional[HardSoftScore] = None
        for tid in self.selector.candidates(a, role):
            score = self.director.evaluate([(a, role, tid)])
            if best_score is None or score > best_score:
                best_tid, best_score = tid, score
        if best_tid is not None:
            self.director.apply([(a, role, best_tid)])
