"""Post-Solve Validierung fertiger Prüfungspläne.

Prüft die strukturellen Eigenschaften der Lösung als Sicherheitsnetz
unabhängig vom Scoring: Pins unverändert, Rollen verschieden, keine
Doppelbelegung pro Datum, Tagesabstand 1, Werte aus den Problemdomänen.
"""

from collections import defaultdict
from typing import Literal, Optional

from pydantic import BaseModel

from models.exam_schedule import ExamSchedule
from solver.duty import DateShiftCalculator


class ValidationViolation(BaseModel):
    """Eine einzelne strukturelle Verletzung."""

    severity: Literal["error", "warning"]
    constraint: str      # z.B. "teacher_double_booking"
    description: str
    entity: str          # Prüfungs-ID / Prüfer-ID / Prüflings-ID


class ValidationReport(BaseModel):
    """Ergebnis der Post-Solve Validierung."""

    violations: list[ValidationViolation]
    is_valid: bool       # True wenn keine Errors (Warnings ok)

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        errors = [v for v in self.violations if v.severity == "error"]
        warnings = [v for v in self.violations if v.severity == "warning"]

        status = (
            "[bold green]✓ VALIDE[/bold green]"
            if self.is_valid
            else "[bold red]✗ VERLETZUNGEN GEFUNDEN[/bold red]"
        )
        lines = [status, f"Fehler: {len(errors)} | Warnungen: {len(warnings)}"]
        console.print(Panel("\n".join(lines), title="Plan-Validierung", border_style="cyan"))

        if not self.violations:
            console.print("[dim]Keine Verletzungen gefunden.[/dim]")
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Typ", width=8)
        table.add_column("Prüfung", width=26)
        table.add_column("Entität", width=14)
        table.add_column("Beschreibung")
        for v in self.violations:
            color = "red" if v.severity == "error" else "yellow"
            table.add_row(
                f"[{color}]{v.severity.upper()}[/{color}]",
                v.constraint, v.entity, v.description,
            )
        console.print(table)

    def of(self, constraint: str) -> list[ValidationViolation]:
        return [v for v in self.violations if v.constraint == constraint]


class SolutionValidator:
    """Prüft einen fertigen ExamSchedule auf strukturelle Verletzungen."""

    def __init__(self, shifts: Optional[DateShiftCalculator] = None) -> None:
        self.shifts = shifts or DateShiftCalculator()

    def validate(
        self,
        schedule: ExamSchedule,
        pin_snapshot: Optional[dict[str, tuple]] = None,
    ) -> ValidationReport:
        """Führt alle Checks durch.

        Args:
            pin_snapshot: {Prüfungs-ID: (Datum, Prüfer 1, Prüfer 2, Ersatz)}
                vor dem Lauf; ohne Snapshot entfällt der Pin-Check.
        """
        violations: list[ValidationViolation] = []
        violations.extend(self._check_domains(schedule))
        violations.extend(self._check_completeness(schedule))
        violations.extend(self._check_role_uniqueness(schedule))
        violations.extend(self._check_double_booking(schedule))
        violations.extend(self._check_day_gap(schedule))
        if pin_snapshot is not None:
            violations.extend(self._check_pins(schedule, pin_snapshot))
        is_valid = not any(v.severity == "error" for v in violations)
        return ValidationReport(violations=violations, is_valid=is_valid)

    # ── Einzelne Checks ──────────────────────────────────────────────────────

    def _check_domains(self, schedule: ExamSchedule) -> list[ValidationViolation]:
        """Datum aus available_dates, Prüfer aus der Prüferliste."""
        dates = set(schedule.available_dates)
        teachers = {t.id for t in schedule.teachers}
        violations = []
        for a in schedule.assignments:
            if a.exam_date is not None and a.exam_date not in dates:
                violations.append(ValidationViolation(
                    severity="error", constraint="date_domain", entity=a.id,
                    description=f"Datum {a.exam_date} ist kein verfügbarer Prüfungstag",
                ))
            for role, tid in a.role_teachers():
                if tid not in teachers:
                    violations.append(ValidationViolation(
                        severity="error", constraint="teacher_domain", entity=a.id,
                        description=f"{role}: unbekannter Prüfer {tid}",
                    ))
        return violations

    def _check_completeness(self, schedule: ExamSchedule) -> list[ValidationViolation]:
        return [
            ValidationViolation(
                severity="warning", constraint="incomplete_assignment", entity=a.id,
                description="Datum oder Prüfer-Rolle nicht belegt",
            )
            for a in schedule.assignments if not a.is_complete()
        ]

    def _check_role_uniqueness(self, schedule: ExamSchedule) -> list[ValidationViolation]:
        """Keine zwei Rollen einer Prüfung mit demselben Prüfer."""
        violations = []
        for a in schedule.assignments:
            ids = [tid for _, tid in a.role_teachers()]
            if len(ids) != len(set(ids)):
                violations.append(ValidationViolation(
                    severity="error", constraint="role_uniqueness", entity=a.id,
                    description=f"Prüfer mehrfach in einer Prüfung: {', '.join(ids)}",
                ))
        return violations

    def _check_double_booking(self, schedule: ExamSchedule) -> list[ValidationViolation]:
        """Kein Prüfer zweimal am selben Datum (über alle Prüfungen)."""
        seen: dict[tuple[str, str], list[str]] = defaultdict(list)
        for a in schedule.assignments:
            if a.exam_date is None:
                continue
            for tid in a.teacher_ids():
                seen[(a.exam_date, tid)].append(a.id)
        violations = []
        for (day, tid), ids in sorted(seen.items()):
            if len(ids) > 1:
                violations.append(ValidationViolation(
                    severity="error", constraint="teacher_double_booking", entity=tid,
                    description=f"{day}: eingeplant in {', '.join(ids)}",
                ))
        return violations

    def _check_day_gap(self, schedule: ExamSchedule) -> list[ValidationViolation]:
        """Zweitägige Prüflinge: Tag 2 genau einen Tag nach Tag 1."""
        by_student: dict[str, dict[str, str]] = defaultdict(dict)
        for a in schedule.assignments:
            if a.exam_date is not None:
                by_student[a.student_id][a.exam_type] = a.exam_date
        violations = []
        for s in schedule.students:
            if not s.needs_day2:
                continue
            days = by_student.get(s.id, {})
            d1 = self.shifts.parse(days.get("day1"))
            d2 = self.shifts.parse(days.get("day2"))
            if d1 is None or d2 is None:
                continue
            if abs((d2 - d1).days) != 1:
                violations.append(ValidationViolation(
                    severity="error", constraint="consecutive_days", entity=s.id,
                    description=f"Tag 1 {d1} und Tag 2 {d2} nicht aufeinanderfolgend",
                ))
        return violations

    def _check_pins(
        self, schedule: ExamSchedule, snapshot: dict[str, tuple]
    ) -> list[ValidationViolation]:
        by_id = {a.id: a for a in schedule.assignments}
        violations = []
        for aid, snap in snapshot.items():
            a = by_id.get(aid)
            if a is None or a.snapshot() != snap:
                violations.append(ValidationViolation(
                    severity="error", constraint="pinned_changed", entity=aid,
                    description=f"Gepinnte Prüfung verändert (erwartet {snap})",
                ))
        return violations
