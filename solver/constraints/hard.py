"""Harte Constraints HC1–HC9 (jede Verletzung kostet hard_weight)."""

from itertools import combinations

from models.exam_assignment import ROLE_LABELS
from solver.constraints.base import Constraint


class HolidayWeekendConstraint(Constraint):
    """HC1: kein Feiertag; am Wochenende kein Verwaltungs-Prüfer; gültiges Datum."""

    id = "HC1"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if a.exam_date is None:
            return []
        if view.date(a.exam_date) is None:
            return [self.match(1, a.id, f"Ungültiges Prüfungsdatum {a.exam_date!r}" if explain else "")]
        if view.ctx.is_holiday(a.exam_date):
            return [self.match(1, a.id, f"{a.exam_date} ist ein Feiertag" if explain else "")]
        if view.ctx.is_weekend(a.exam_date):
            admins = [tid for _, tid in a.role_teachers() if view.is_admin(tid)]
            if admins:
                desc = ""
                if explain:
                    desc = (f"{a.exam_date} ist Wochenende: Verwaltungs-Prüfer "
                            f"{', '.join(view.name(t) for t in admins)} eingeplant")
                return [self.match(1, a.id, desc)]
        return []


class Examiner1DepartmentConstraint(Constraint):
    """HC2: Prüfer 1 aus der Abteilung des Prüflings oder dem Austausch-Partner."""

    id = "HC2"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if not a.examiner1_id:
            return []
        student_dept = view.student_dept(a.student_id)
        ex1_dept = view.dept(a.examiner1_id)
        if view.ctx.departments.matches_or_interchange(student_dept, ex1_dept):
            return []
        desc = ""
        if explain:
            desc = (f"Prüfling {a.student_id} (Abt. {student_dept or '?'}): "
                    f"Prüfer 1 {view.name(a.examiner1_id)} aus Abt. {ex1_dept or '?'}")
        return [self.match(1, a.student_id, desc)]


class NoDayShiftExaminerConstraint(Constraint):
    """HC3: kein Prüfer im Tagdienst (Verwaltung ausgenommen)."""

    id = "HC3"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if a.exam_date is None:
            return []
        matches = []
        for role, tid in a.role_teachers():
            if view.status(tid, a.exam_date) == "day":
                desc = ""
                if explain:
                    desc = (f"{ROLE_LABELS[role]} {view.name(tid)} hat am "
                            f"{a.exam_date} Tagdienst")
                matches.append(self.match(1, tid, desc))
        return matches


class NoDoubleBookingConstraint(Constraint):
    """HC4: kein Prüfer zweimal am selben Datum (rollenübergreifend)."""

    id = "HC4"
    scope = "date"

    def evaluate_group(self, key, assignments, view, explain=False):
        matches = []
        ordered = sorted(assignments, key=lambda x: x.id)
        for a in ordered:
            if a.examiner1_id and a.examiner1_id == a.examiner2_id:
                desc = ""
                if explain:
                    desc = f"{key}: {view.name(a.examiner1_id)} ist Prüfer 1 und 2 in {a.id}"
                matches.append(self.match(1, a.examiner1_id, desc))
        for a1, a2 in combinations(ordered, 2):
            shared = a1.teacher_ids() & a2.teacher_ids()
            if shared:
                desc = ""
                if explain:
                    names = ", ".join(view.name(t) for t in sorted(shared))
                    desc = f"{key}: {names} in {a1.id} und {a2.id} eingeplant"
                matches.append(self.match(1, min(shared), desc))
        return matches


class StudentNotOnDayShiftConstraint(Constraint):
    """HC6 (Teil 1): Prüfling hat am Prüfungstag keinen Tagdienst."""

    id = "HC6"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        student = view.student(a.student_id)
        if not student.team or a.exam_date is None:
            return []
        duty = view.ctx.duty.team_for(a.exam_date)
        if duty is None or duty.day_shift != student.team:
            return []
        desc = f"Prüfling {student.id} hat am {a.exam_date} Tagdienst" if explain else ""
        return [self.match(1, student.id, desc)]


class ConsecutiveExamDaysConstraint(Constraint):
    """HC6 (Teil 2): Tag 1 und Tag 2 eines Prüflings genau 1 Tag auseinander."""

    id = "HC6"
    scope = "student"

    def evaluate_group(self, key, assignments, view, explain=False):
        if not view.student(key).needs_day2:
            return []
        by_type = {a.exam_type: a for a in assignments}
        day1, day2 = by_type.get("day1"), by_type.get("day2")
        if day1 is None or day2 is None:
            return []
        d1, d2 = view.date(day1.exam_date), view.date(day2.exam_date)
        if d1 is None or d2 is None:
            return []
        if abs((d2 - d1).days) == 1:
            return []
        desc = ""
        if explain:
            desc = (f"Prüfling {key}: Tag 1 {day1.exam_date} und Tag 2 "
                    f"{day2.exam_date} nicht aufeinanderfolgend")
        return [self.match(1, key, desc)]


class TwoExaminerDepartmentsConstraint(Constraint):
    """HC7: Prüfer 1 und 2 vorhanden; Prüfer 2 fremd; verschiedene Abteilungen."""

    id = "HC7"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        if not a.examiner1_id or not a.examiner2_id:
            desc = f"{a.id}: Prüfer 1 und Prüfer 2 müssen belegt sein" if explain else ""
            return [self.match(1, a.id, desc)]
        student_dept = view.student_dept(a.student_id)
        ex1_dept = view.dept(a.examiner1_id)
        ex2_dept = view.dept(a.examiner2_id)
        reasons = []
        if student_dept is None or ex1_dept is None or ex2_dept is None:
            reasons.append("ungültige Abteilungsangabe")
        else:
            if ex2_dept == student_dept:
                reasons.append(f"Prüfer 2 aus der Abteilung des Prüflings ({ex2_dept})")
            if ex1_dept == ex2_dept:
                reasons.append(f"Prüfer 1 und 2 aus derselben Abteilung ({ex1_dept})")
        if not reasons:
            return []
        desc = f"{a.id}: " + "; ".join(reasons) if explain else ""
        return [self.match(len(reasons), a.id, desc)]


class BackupIdentityConstraint(Constraint):
    """HC8: Ersatzprüfer ist eine andere Person als Prüfer 1 und 2."""

    id = "HC8"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        b = a.backup_examiner_id
        if not b or b not in (a.examiner1_id, a.examiner2_id):
            return []
        desc = f"{a.id}: {view.name(b)} ist zugleich Prüfer und Ersatzprüfer" if explain else ""
        return [self.match(1, b, desc)]


class BackupDepartmentConstraint(Constraint):
    """HC8b: Ersatzprüfer aus anderer Abteilung als Prüfer 1 und 2."""

    id = "HC8b"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        backup_dept = view.dept(a.backup_examiner_id)
        if backup_dept is None:
            return []
        clash = [tid for tid in (a.examiner1_id, a.examiner2_id)
                 if tid and view.dept(tid) == backup_dept]
        if not clash:
            return []
        desc = ""
        if explain:
            desc = (f"{a.id}: Ersatzprüfer {view.name(a.backup_examiner_id)} teilt "
                    f"Abt. {backup_dept} mit {', '.join(view.name(t) for t in clash)}")
        return [self.match(1, a.backup_examiner_id, desc)]


class TeacherAvailabilityConstraint(Constraint):
    """HC9: kein Einsatz während einer gemeldeten Abwesenheit."""

    id = "HC9"

    def evaluate_group(self, key, assignments, view, explain=False):
        (a,) = assignments
        matches = []
        for role, tid in a.role_teachers():
            if view.unavailable(tid, a.exam_date):
                desc = ""
                if explain:
                    desc = f"{ROLE_LABELS[role]} {view.name(tid)} ist am {a.exam_date} abwesend"
                matches.append(self.match(1, tid, desc))
        return matches


HARD_CONSTRAINTS: list[type[Constraint]] = [
    HolidayWeekendConstraint,
    Examiner1DepartmentConstraint,
    NoDayShiftExaminerConstraint,
    NoDoubleBookingConstraint,
    StudentNotOnDayShiftConstraint,
    ConsecutiveExamDaysConstraint,
    TwoExaminerDepartmentsConstraint,
    BackupIdentityConstraint,
    BackupDepartmentConstraint,
    TeacherAvailabilityConstraint,
]
