"""Züge der lokalen Suche und ihre zufällige Auswahl.

Jeder Zug beschreibt seine Änderungen als Liste (Zuweisung, Feld, Wert);
angewendet und zurückgenommen wird er ausschließlich über den ScoreDirector.
Gepinnte Zuweisungen tauchen in keinem Zug auf.
"""

import random
from datetime import timedelta
from typing import Optional

from models.exam_assignment import ExamAssignment, ROLE_FIELDS
from models.exam_schedule import ExamSchedule
from solver.constraints import ScoringView
from solver.scoring import Change, ScoreDirector

# Abteilungsdistanz eines Kandidaten zur Rolle
DISTANCE_RECOMMENDED = 0
DISTANCE_OTHER = 1
DISTANCE_BARRED = 10

# Auswahlwahrscheinlichkeit je Distanzstufe
_BUCKET_WEIGHTS = {DISTANCE_RECOMMENDED: 0.7, DISTANCE_OTHER: 0.25, DISTANCE_BARRED: 0.05}


# ─── Züge ────────────────────────────────────────────────────────────────────

class Move:
    """Basisklasse: eine atomare Folge von Feldänderungen."""

    kind = "move"

    def changes(self) -> list[Change]:
        raise NotImplementedError

    def entity_ids(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(a.id for a, _, _ in self.changes()))

    def is_doable(self) -> bool:
        """False wenn der Zug nichts verändern würde."""
        return any(getattr(a, f) != v for a, f, v in self.changes())

    def __repr__(self) -> str:
        parts = ", ".join(f"{a.id}.{f}={v}" for a, f, v in self.changes())
        return f"{type(self).__name__}({parts})"


class ChangeMove(Move):
    """Ein Feld (Datum oder Rolle) einer Zuweisung neu belegen."""

    kind = "change"

    def __init__(self, assignment: ExamAssignment, field: str, value: Optional[str]) -> None:
        self.assignment = assignment
        self.field = field
        self.value = value

    def changes(self) -> list[Change]:
        return [(self.assignment, self.field, self.value)]


class SwapMove(Move):
    """Die Prüfer einer Rolle zwischen zwei Zuweisungen desselben Datums tauschen."""

    kind = "swap"

    def __init__(self, left: ExamAssignment, right: ExamAssignment, field: str) -> None:
        self.left = left
        self.right = right
        self.field = field

    def changes(self) -> list[Change]:
        lv, rv = getattr(self.left, self.field), getattr(self.right, self.field)
        return [(self.left, self.field, rv), (self.right, self.field, lv)]


class ConsecutivePairMove(Move):
    """Tag 1 auf D und Tag 2 auf D+1 – beide Daten in einem Schritt."""

    kind = "pair"

    def __init__(
        self, day1: ExamAssignment, day2: ExamAssignment, first: str, second: str
    ) -> None:
        self.day1 = day1
        self.day2 = day2
        self.first = first
        self.second = second

    def changes(self) -> list[Change]:
        return [(self.day1, "exam_date", self.first), (self.day2, "exam_date", self.second)]


# ─── Kandidaten ──────────────────────────────────────────────────────────────

def department_distance(view: ScoringView, a: ExamAssignment, role: str, teacher_id: str) -> int:
    """0 = empfohlen, 1 = sonstige Abteilung, 10 = durch Regeln ausgeschlossen."""
    dept = view.dept(teacher_id)
    student_dept = view.student_dept(a.student_id)
    if role == "examiner1_id":
        if view.ctx.departments.matches_or_interchange(student_dept, dept):
            return DISTANCE_RECOMMENDED
        return DISTANCE_BARRED
    if dept is not None and dept == student_dept:
        return DISTANCE_BARRED
    rec = view.recommendation(a.student_id)
    if role == "backup_examiner_id" and view.is_admin(teacher_id):
        return DISTANCE_RECOMMENDED
    if dept in rec.pool:
        return DISTANCE_RECOMMENDED
    return DISTANCE_OTHER


def consecutive_dates(schedule: ExamSchedule, view: ScoringView) -> list[tuple[str, str]]:
    """Alle (D, D+1)-Paare, bei denen beide Daten verfügbar sind."""
    by_day = {}
    for text in schedule.available_dates:
        day = view.date(text)
        if day is not None:
            by_day[day] = text
    return [
        (text, by_day[day + timedelta(days=1)])
        for day, text in sorted(by_day.items())
        if day + timedelta(days=1) in by_day
    ]


class MoveSelector:
    """Erzeugt zufällige, durchführbare Züge (gesteuert über ein geseedetes RNG)."""

    # Anteile der Zugarten: Paar, Tausch, Datum; Rest = Rollenwechsel
    PAIR_RATIO = 0.15
    SWAP_RATIO = 0.15
    DATE_RATIO = 0.15

    def __init__(self, director: ScoreDirector, rng: random.Random) -> None:
        self.director = director
        self.rng = rng
        schedule = director.schedule
        view = director.view
        self.movable = [a for a in schedule.assignments if not a.pinned]
        self.dates = list(schedule.available_dates)
        self.date_pairs = consecutive_dates(schedule, view)

        by_student: dict[str, dict[str, ExamAssignment]] = {}
        for a in self.movable:
            by_student.setdefault(a.student_id, {})[a.exam_type] = a
        self.day_pairs = [
            (d["day1"], d["day2"]) for d in by_student.values() if "day1" in d and "day2" in d
        ]

        teacher_ids = [t.id for t in schedule.teachers]
        self._buckets: dict[tuple[str, str], dict[int, list[str]]] = {}
        for a in self.movable:
            for role in ROLE_FIELDS:
                buckets: dict[int, list[str]] = {}
                for tid in teacher_ids:
                    buckets.setdefault(department_distance(view, a, role, tid), []).append(tid)
                self._buckets[(a.id, role)] = buckets

    def candidates(self, a: ExamAssignment, role: str) -> list[str]:
        """Prüfer-Kandidaten einer Rolle, nach Distanz sortiert."""
        buckets = self._buckets[(a.id, role)]
        return [tid for d in sorted(buckets) for tid in buckets[d]]

    def pick_teacher(self, a: ExamAssignment, role: str) -> str:
        buckets = self._buckets[(a.id, role)]
        distances = sorted(buckets)
        weights = [_BUCKET_WEIGHTS.get(d, 0.05) for d in distances]
        distance = self.rng.choices(distances, weights=weights)[0]
        return self.rng.choice(buckets[distance])

    # ─── Zugarten ───

    def _pair_move(self) -> Optional[Move]:
        if not self.day_pairs or not self.date_pairs:
            return None
        day1, day2 = self.rng.choice(self.day_pairs)
        first, second = self.rng.choice(self.date_pairs)
        return ConsecutivePairMove(day1, day2, first, second)

    def _swap_move(self) -> Optional[Move]:
        a = self.rng.choice(self.movable)
        if a.exam_date is None:
            return None
        others = [
            b for b in self.director.assignments_on(a.exam_date)
            if b.id != a.id and not b.pinned
        ]
        if not others:
            return None
        b = self.rng.choice(others)
        return SwapMove(a, b, self.rng.choice(ROLE_FIELDS))

    def _date_move(self) -> Optional[Move]:
        if not self.dates:
            return None
        a = self.rng.choice(self.movable)
        return ChangeMove(a, "exam_date", self.rng.choice(self.dates))

    def _role_move(self) -> Optional[Move]:
        a = self.rng.choice(self.movable)
        role = self.rng.choice(ROLE_FIELDS)
        if not self._buckets[(a.id, role)]:
            return None
        return ChangeMove(a, role, self.pick_teacher(a, role))

    def next_move(self, attempts: int = 20) -> Optional[Move]:
        """Nächster durchführbarer Zug oder None (nichts beweglich)."""
        if not self.movable:
            return None
        for _ in range(attempts):
            r = self.rng.random()
            if r < self.PAIR_RATIO:
                move = self._pair_move()
            elif r < self.PAIR_RATIO + self.SWAP_RATIO:
                move = self._swap_move()
            elif r < self.PAIR_RATIO + self.SWAP_RATIO + self.DATE_RATIO:
                move = self._date_move()
            else:
                move = self._role_move()
            if move is not None and move.is_doable():
                return move
        return None
