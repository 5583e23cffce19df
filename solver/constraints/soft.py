"""Weiche Constraints SC1–SC17.

Das konfigurierte Gewicht ist der Wert des Hauptfalls; Nebenfälle (z.B. der
Ersatzprüfer bei SC1) werden über einen festen Faktor skaliert. Bei SC2,
SC4, SC6 und SC8 fließen die Dienst-Prioritätspunkte des Prüfers mit ein
(Nacht 100, Ruhetag 1 80, Ruhetag 2 60, Verwaltung 40).
"""

from collections import Counter

from models.exam_assignment import ROLE_LABELS
from solver.constraints.base import Constraint


# ─── Dienststatus-Boni (SC1 / SC3 / SC5 / SC17) ──────────────────────────────

class _ShiftRoleReward(Constraint):
    """Bonus für Prüfer mit einem bestimmten Dienststatus, gewichtet nach Rolle."""

    status: str = ""
    backup_factor: float = 1.0
    weekend_only: bool = False

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if a.exam_date is None:
            return []
        if self.weekend_only and not view.ctx.is_weekend(a.exam_date):
            return []
        matches = []
        for role, tid in a.role_teachers():
            if view.status(tid, a.exam_date) != self.status:
                continue
            factor = self.backup_factor if role == "backup_examiner_id" else 1.0
            desc = f"{a.id}: {ROLE_LABELS[role]} {view.name(tid)} ({self.status})" if explain else ""
            matches.append(self.match(factor, tid, desc))
        return matches


class NightShiftReward(_ShiftRoleReward):
    """SC1: Nachtdienst-Prüfer (Ersatz 80/200)."""
    id = "SC1"
    status = "night"
    backup_factor = 80 / 200


class RestDay1Reward(_ShiftRoleReward):
    """SC3: Prüfer mit Ruhetag 1 (Ersatz 40/120)."""
    id = "SC3"
    status = "rest1"
    backup_factor = 40 / 120


class RestDay2Reward(_ShiftRoleReward):
    """SC5: Prüfer mit Ruhetag 2 (Ersatz 30/80)."""
    id = "SC5"
    status = "rest2"
    backup_factor = 30 / 80


class WeekendNightShiftReward(_ShiftRoleReward):
    """SC17: am Wochenende Nachtdienst-Prüfer (Ersatz 200/300)."""
    id = "SC17"
    status = "night"
    backup_factor = 200 / 300
    weekend_only = True


# ─── Empfohlene Abteilungen (SC2 / SC4 / SC6 / SC8) ──────────────────────────

def examiner2_level(view, a) -> int:
    """1 = Empf. 1, 2 = im Pool, 0 = keine Übereinstimmung."""
    dept = view.dept(a.examiner2_id)
    if dept is None:
        return 0
    rec = view.recommendation(a.student_id)
    if rec.examiner1 is not None and dept == rec.examiner1:
        return 1
    return 2 if dept in rec.pool else 0


def backup_level(view, a) -> int:
    """1 = Empf. 2, 2 = im Pool, 0 = keine Übereinstimmung."""
    dept = view.dept(a.backup_examiner_id)
    if dept is None:
        return 0
    rec = view.recommendation(a.student_id)
    if rec.examiner2 is not None and dept == rec.examiner2:
        return 1
    return 2 if dept in rec.pool else 0


class Examiner2RecommendationReward(Constraint):
    """SC2: Prüfer 2 aus Empf. 1 (Basis 100) oder aus dem Pool (Basis 60)."""

    id = "SC2"
    _BASE = {1: 100, 2: 60}

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        level = examiner2_level(view, a)
        if level == 0:
            return []
        value = self._BASE[level] + view.priority(a.examiner2_id, a.exam_date)
        desc = f"{a.id}: Prüfer 2 Stufe {level}" if explain else ""
        return [self.match(value / 100, a.examiner2_id, desc)]


class BackupRecommendationReward(Constraint):
    """SC4: Ersatzprüfer aus Empf. 2 (Basis 80) oder aus dem Pool (Basis 50)."""

    id = "SC4"
    _BASE = {1: 80, 2: 50}

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        level = backup_level(view, a)
        if level == 0:
            return []
        value = self._BASE[level] + view.priority(a.backup_examiner_id, a.exam_date)
        desc = f"{a.id}: Ersatzprüfer Stufe {level}" if explain else ""
        return [self.match(value / 80, a.backup_examiner_id, desc)]


class ExamTypeRecommendationReward(Constraint):
    """SC6: Prüfer 2 aus der tagesspezifischen Empfehlung (day1 → Empf. 1, day2 → Empf. 2)."""

    id = "SC6"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        dept = view.dept(a.examiner2_id)
        if dept is None:
            return []
        wanted = view.examiner2_wanted(a)
        if wanted is None or dept != wanted:
            return []
        value = 50 + view.priority(a.examiner2_id, a.exam_date)
        desc = f"{a.id}: Prüfer 2 aus Abt. {dept} ({a.exam_type})" if explain else ""
        return [self.match(value / 50, a.examiner2_id, desc)]


class PoolFallbackReward(Constraint):
    """SC8: Stufe 3 – genau eine der Rollen Prüfer 2 / Ersatz stammt aus dem Pool."""

    id = "SC8"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        ex2_in = examiner2_level(view, a) > 0
        backup_in = backup_level(view, a) > 0
        if not (ex2_in or backup_in) or (ex2_in and backup_in):
            return []
        prio = max(view.priority(a.examiner2_id, a.exam_date),
                   view.priority(a.backup_examiner_id, a.exam_date))
        desc = f"{a.id}: Stufe 3 (mindestens eine Rolle im Pool)" if explain else ""
        return [self.match((30 + prio) / 30, a.id, desc)]


# ─── Verwaltung / Austausch (SC7 / SC9 / SC13) ───────────────────────────────

class AdminBackupReward(Constraint):
    """SC7: Verwaltungs-Prüfer als Ersatzprüfer."""

    id = "SC7"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if not view.is_admin(a.backup_examiner_id):
            return []
        desc = f"{a.id}: Verwaltung als Ersatzprüfer" if explain else ""
        return [self.match(1, a.backup_examiner_id, desc)]


class InterchangeReward(Constraint):
    """SC9: Prüfer 1 aus der Austausch-Abteilung (z.B. 三 ↔ 七)."""

    id = "SC9"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        student_dept = view.student_dept(a.student_id)
        ex1_dept = view.dept(a.examiner1_id)
        if not view.ctx.departments.is_interchange(student_dept, ex1_dept):
            return []
        desc = f"{a.id}: Austausch {student_dept} ↔ {ex1_dept}" if explain else ""
        return [self.match(1, a.examiner1_id, desc)]


class AdminMainExaminerPenalty(Constraint):
    """SC13: Verwaltungs-Prüfer als Prüfer 1 oder 2 (pro Rolle)."""

    id = "SC13"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        matches = []
        for role in ("examiner1_id", "examiner2_id"):
            tid = getattr(a, role)
            if view.is_admin(tid):
                desc = f"{a.id}: Verwaltung als {ROLE_LABELS[role]}" if explain else ""
                matches.append(self.match(1, tid, desc))
        return matches


class WeekendPenalty(Constraint):
    """SC16: Prüfung an einem Wochenende."""

    id = "SC16"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if not view.ctx.is_weekend(a.exam_date):
            return []
        desc = f"{a.id}: Prüfung am Wochenende ({a.exam_date})" if explain else ""
        return [self.match(1, a.id, desc)]


# ─── Prüfling-bezogen (SC14 / SC15) ──────────────────────────────────────────

def _day_pair(assignments):
    by_type = {a.exam_type: a for a in assignments}
    return by_type.get("day1"), by_type.get("day2")


class Examiner2DiversityReward(Constraint):
    """SC14: Prüfer 2 an Tag 1 und Tag 2 aus zwei verschiedenen Pool-Abteilungen."""

    id = "SC14"
    scope = "student"

    def evaluate_group(self, key, assignments, view, explain=False):
        day1, day2 = _day_pair(assignments)
        if day1 is None or day2 is None:
            return []
        d1, d2 = view.dept(day1.examiner2_id), view.dept(day2.examiner2_id)
        pool = view.recommendation(key).pool
        if d1 is None or d2 is None or d1 == d2 or d1 not in pool or d2 not in pool:
            return []
        desc = f"Prüfling {key}: Prüfer 2 aus {d1} und {d2}" if explain else ""
        return [self.match(1, key, desc)]


class SameExaminer1Penalty(Constraint):
    """SC15: gleicher Prüfer 1 an beiden Tagen."""

    id = "SC15"
    scope = "student"

    def evaluate_group(self, key, assignments, view, explain=False):
        day1, day2 = _day_pair(assignments)
        if day1 is None or day2 is None or not day1.examiner1_id:
            return []
        if day1.examiner1_id != day2.examiner1_id:
            return []
        desc = f"Prüfling {key}: {view.name(day1.examiner1_id)} an beiden Tagen Prüfer 1" if explain else ""
        return [self.match(1, key, desc)]


# ─── Arbeitslast (SC10 / SC11 / SC12) ────────────────────────────────────────

def gap_penalty(gap_days: int) -> int:
    """Malus für zwei Einsatztage im Abstand gap_days (1 = direkt hintereinander)."""
    if gap_days <= 1:
        return 50
    if gap_days <= 3:
        return 20
    if gap_days <= 5:
        return 8
    return 0


class WorkloadBalancePenalty(Constraint):
    """SC10: > 3 Einsätze pro Prüfer und dichte Einsatzfolgen pro Rolle."""

    id = "SC10"
    scope = "teacher"
    MAX_ASSIGNMENTS = 3

    def evaluate_group(self, key, assignments, view, explain=False):
        matches = []
        dates_by_role: dict[str, set] = {}
        total = 0
        for a in assignments:
            for role, tid in a.role_teachers():
                if tid != key:
                    continue
                total += 1
                day = view.date(a.exam_date)
                if day is not None:
                    dates_by_role.setdefault(role, set()).add(day)
        if total > self.MAX_ASSIGNMENTS:
            excess = total - self.MAX_ASSIGNMENTS
            desc = f"{view.name(key)}: {total} Einsätze" if explain else ""
            matches.append(self.match(excess * 5, key, desc))
        for role in sorted(dates_by_role):
            days = sorted(dates_by_role[role])
            value = sum(gap_penalty((b - a).days) for a, b in zip(days, days[1:]))
            if value:
                desc = ""
                if explain:
                    desc = f"{view.name(key)}: dichte Einsatzfolge als {ROLE_LABELS[role]}"
                matches.append(self.match(value, key, desc))
        return matches


class DailyLoadPenalty(Constraint):
    """SC11: mehr als 4 Prüfungen an einem Datum (Überschuss² × Anzahl)."""

    id = "SC11"
    scope = "date"
    MAX_PER_DAY = 4

    def evaluate_group(self, key, assignments, view, explain=False):
        count = len(assignments)
        if count <= self.MAX_PER_DAY:
            return []
        excess = count - self.MAX_PER_DAY
        desc = f"{key}: {count} Prüfungen" if explain else ""
        return [self.match(excess * excess * count, key, desc)]


class BackupBalancePenalty(Constraint):
    """SC12: Ersatzprüfer-Einsätze gleichmäßig verteilen ((Anzahl − 1)²)."""

    id = "SC12"
    scope = "teacher"

    def evaluate_group(self, key, assignments, view, explain=False):
        count = Counter(a.backup_examiner_id for a in assignments)[key]
        if count <= 1:
            return []
        desc = f"{view.name(key)}: {count}× Ersatzprüfer" if explain else ""
        return [self.match((count - 1) ** 2, key, desc)]


SOFT_CONSTRAINTS: list[type[Constraint]] = [
    NightShiftReward,
    Examiner2RecommendationReward,
    RestDay1Reward,
    BackupRecommendationReward,
    RestDay2Reward,
    ExamTypeRecommendationReward,
    AdminBackupReward,
    PoolFallbackReward,
    InterchangeReward,
    WorkloadBalancePenalty,
    DailyLoadPenalty,
    BackupBalancePenalty,
    AdminMainExaminerPenalty,
    Examiner2DiversityReward,
    SameExaminer1Penalty,
    WeekendPenalty,
    WeekendNightShiftReward,
]
