"""Diagnose vor und nach dem Solver-Lauf.

Vor dem Lauf: mögliche Ursachen für Unlösbarkeit (zu wenig Prüfer,
Abteilungen ohne Prüfer, Abwesenheiten an fast allen Tagen).
Nach dem Lauf: Vollständigkeit, Gesamteinschätzung, Probleme, Vorschläge.
"""

import logging
from collections import Counter
from typing import Literal, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from models.exam_schedule import ExamSchedule, HardSoftScore
from solver.context import SolvingContext

logger = logging.getLogger(__name__)

Cause = Literal["capacity_shortage", "department_imbalance", "over_constrained_unavailability"]

# Prüfer pro Prüfung (Prüfer 1, Prüfer 2, Ersatz)
ROLES_PER_EXAM = 3
# Ab diesem Anteil abwesender Tage gilt ein Prüfer als überbeschränkt
UNAVAILABLE_SHARE = 0.8


# ─── Modelle ──────────────────────────────────────────────────────────────────

class DiagnosticCause(BaseModel):
    """Eine Kandidaten-Ursache für fehlende oder schlechte Lösungen."""

    cause: Cause
    severity: Literal["error", "warning"]
    message: str
    entities: list[str] = []


class NoSolutionDiagnosis(BaseModel):
    """Ergebnis der Machbarkeitsanalyse vor dem Lauf."""

    causes: list[DiagnosticCause] = []

    @property
    def has_blocking_cause(self) -> bool:
        return any(c.severity == "error" for c in self.causes)

    def print_rich(self, console: Optional[Console] = None) -> None:
        console = console or Console()
        if not self.causes:
            console.print("[green]✓ Keine strukturellen Probleme gefunden.[/green]")
            return
        table = Table(title="Mögliche Ursachen", box=box.ROUNDED)
        table.add_column("Ursache", style="bold")
        table.add_column("Stufe")
        table.add_column("Beschreibung")
        table.add_column("Betrifft", style="dim")
        for c in self.causes:
            sev = "[red]Fehler[/red]" if c.severity == "error" else "[yellow]Warnung[/yellow]"
            shown = ", ".join(c.entities[:8]) + (" ..." if len(c.entities) > 8 else "")
            table.add_row(c.cause, sev, c.message, shown)
        console.print(table)


class ScheduleDiagnosis(BaseModel):
    """Bewertung eines fertigen Plans."""

    has_solution: bool
    is_feasible: bool
    completion_percentage: int
    overall_assessment: str
    score: Optional[HardSoftScore] = None
    violations: list[str] = []
    suggestions: list[str] = []

    def print_rich(self, console: Optional[Console] = None) -> None:
        console = console or Console()
        color = "green" if self.is_feasible and self.completion_percentage >= 95 else (
            "yellow" if self.completion_percentage >= 50 else "red")
        lines = [
            f"[bold {color}]{self.overall_assessment}[/bold {color}]",
            f"Vollständigkeit: {self.completion_percentage}%",
            f"Score: {self.score if self.score is not None else '–'}",
            f"Zulässig: {'ja' if self.is_feasible else 'nein'}",
        ]
        console.print(Panel("\n".join(lines), title="Planungsdiagnose", border_style=color))
        if self.violations:
            console.print("[bold]Probleme:[/bold]")
            for v in self.violations:
                console.print(f"  • {v}")
        if self.suggestions:
            console.print("[bold]Vorschläge:[/bold]")
            for s in self.suggestions:
                console.print(f"  {s}")


# ─── Machbarkeit vor dem Lauf ────────────────────────────────────────────────

class FeasibilityAnalyzer:
    """Sucht strukturelle Ursachen, die eine zulässige Lösung verhindern."""

    def __init__(self, ctx: Optional[SolvingContext] = None) -> None:
        self.ctx = ctx or SolvingContext()

    def analyze(self, schedule: ExamSchedule) -> NoSolutionDiagnosis:
        causes: list[DiagnosticCause] = []
        causes.extend(self._capacity(schedule))
        causes.extend(self._departments(schedule))
        causes.extend(self._unavailability(schedule))
        for c in causes:
            logger.info(f"Diagnose [{c.cause}] {c.message}")
        return NoSolutionDiagnosis(causes=causes)

    def _usable_on(self, schedule: ExamSchedule, text: str) -> list[str]:
        """Prüfer, die an diesem Datum weder Tagdienst haben noch abwesend sind."""
        day = self.ctx.duty.parse(text)
        usable = []
        for t in schedule.teachers:
            if day is not None and t.is_unavailable_on(day):
                continue
            if self.ctx.shift_status(t, text) == "day":
                continue
            usable.append(t.id)
        return usable

    def _capacity(self, schedule: ExamSchedule) -> list[DiagnosticCause]:
        causes = []
        if len(schedule.teachers) < ROLES_PER_EXAM:
            causes.append(DiagnosticCause(
                cause="capacity_shortage", severity="error",
                message=f"Nur {len(schedule.teachers)} Prüfer, mindestens "
                        f"{ROLES_PER_EXAM} pro Prüfung nötig",
            ))
            return causes

        slots = 0
        thin_dates = []
        for text in schedule.available_dates:
            usable = len(self._usable_on(schedule, text))
            # Pro Datum höchstens usable // 3 Prüfungen ohne Doppelbelegung
            slots += usable // ROLES_PER_EXAM
            if usable < ROLES_PER_EXAM:
                thin_dates.append(text)
        exams = len(schedule.assignments)
        if slots < exams:
            causes.append(DiagnosticCause(
                cause="capacity_shortage", severity="error",
                message=f"{exams} Prüfungen, aber nur Kapazität für {slots} "
                        f"(Prüfer ≥ Prüflinge × {ROLES_PER_EXAM} empfohlen)",
            ))
        if thin_dates:
            causes.append(DiagnosticCause(
                cause="capacity_shortage", severity="warning",
                message=f"{len(thin_dates)} Datum/Daten mit weniger als "
                        f"{ROLES_PER_EXAM} einsetzbaren Prüfern",
                entities=thin_dates,
            ))
        return causes

    def _departments(self, schedule: ExamSchedule) -> list[DiagnosticCause]:
        norm = self.ctx.departments
        teacher_depts = {norm(t.department) for t in schedule.teachers} - {None}
        orphans = []
        for s in schedule.students:
            dept = norm(s.department)
            if not any(norm.matches_or_interchange(dept, d) for d in teacher_depts):
                orphans.append(s.id)
        if not orphans:
            return []
        return [DiagnosticCause(
            cause="department_imbalance", severity="error",
            message=f"{len(orphans)} Prüfling(e) ohne Prüfer aus eigener oder "
                    f"Austausch-Abteilung (Prüfer 1 nicht besetzbar)",
            entities=orphans,
        )]

    def _unavailability(self, schedule: ExamSchedule) -> list[DiagnosticCause]:
        days = [d for d in (self.ctx.duty.parse(t) for t in schedule.available_dates) if d]
        if not days:
            return []
        blocked = [
            t.id for t in schedule.teachers
            if sum(1 for d in days if t.is_unavailable_on(d)) >= UNAVAILABLE_SHARE * len(days)
        ]
        if not blocked:
            return []
        severity = "error" if len(schedule.teachers) - len(blocked) < ROLES_PER_EXAM else "warning"
        return [DiagnosticCause(
            cause="over_constrained_unavailability", severity=severity,
            message=f"{len(blocked)} Prüfer an mindestens "
                    f"{int(UNAVAILABLE_SHARE * 100)}% der Tage abwesend",
            entities=blocked,
        )]


# ─── Diagnose nach dem Lauf ──────────────────────────────────────────────────

def diagnose(schedule: Optional[ExamSchedule], violation_ids: Optional[list[str]] = None) -> ScheduleDiagnosis:
    """Vollständigkeit, Einschätzung, Probleme und Vorschläge zu einem Plan.

    Args:
        schedule: Der gelöste Plan (None = kein Ergebnis).
        violation_ids: Constraint-IDs aller harten Verletzungen (optional).
    """
    if schedule is None:
        return ScheduleDiagnosis(
            has_solution=False, is_feasible=False, completion_percentage=0,
            overall_assessment="Kein Ergebnis vom Solver",
            violations=["Der Solver hat keinen Plan geliefert"],
            suggestions=["Eingabedaten und Konfiguration prüfen"],
        )
    total = len(schedule.assignments)
    if total == 0:
        return ScheduleDiagnosis(
            has_solution=False, is_feasible=False, completion_percentage=0,
            overall_assessment="Keine Prüfungen angelegt", score=schedule.score,
            violations=["Die Liste der Prüfungen ist leer"],
            suggestions=["Prüflinge und Prüfungstage prüfen"],
        )

    complete = sum(1 for a in schedule.assignments if a.is_complete())
    completion = int(complete / total * 100)
    score = schedule.score
    feasible = score is not None and score.is_feasible
    logger.info(f"Diagnose: Vollständigkeit {completion}% ({complete}/{total}), Score {score}")

    if feasible and completion >= 95:
        assessment = "Planung erfolgreich, gute Qualität"
    elif feasible and completion >= 80:
        assessment = "Planung weitgehend fertig, einzelne Zuweisungen manuell prüfen"
    elif completion >= 50:
        assessment = "Planung teilweise fertig, viele Konflikte"
    else:
        assessment = "Planung nicht abgeschlossen, schwere Konflikte in den Daten"

    violations = []
    missing_date = sum(1 for a in schedule.assignments if a.exam_date is None)
    partial = total - complete - missing_date
    if missing_date:
        violations.append(f"{missing_date} Prüfung(en) ohne Datum ({missing_date * 100 // total}%)")
    if partial > 0:
        violations.append(f"{partial} Prüfung(en) unvollständig (Prüfer fehlen)")

    by_dept: dict[str, list[int]] = {}
    for a in schedule.assignments:
        dept = schedule.student(a.student_id).department
        entry = by_dept.setdefault(dept, [0, 0])
        entry[0] += 1
        if not a.is_complete():
            entry[1] += 1
    for dept, (n, open_) in sorted(by_dept.items()):
        if open_:
            violations.append(f"Abteilung {dept}: {open_}/{n} nicht vollständig belegt")

    if score is not None and score.hard < 0:
        violations.append(f"Harte Constraints verletzt: {score.hard}")
    if violation_ids:
        for cid, n in Counter(violation_ids).most_common():
            violations.append(f"{cid}: {n} Verletzung(en)")

    suggestions = []
    if feasible and completion >= 95:
        suggestions.append("Plan kann direkt verwendet werden")
    elif completion < 50:
        suggestions += [
            "Schwere Konflikte in den Daten, empfohlen:",
            "  1. Mehr Prüfer einplanen (≥ Prüflinge × 3)",
            "  2. Abteilungsverteilung prüfen, jede Abteilung braucht Prüfer",
            "  3. Abwesenheiten der Prüfer reduzieren",
            "  4. Einzelne Constraints (z.B. HC2, SC13) testweise deaktivieren",
            "  5. Datumsfenster verlängern oder weniger Prüflinge planen",
        ]
    elif completion < 80:
        suggestions += [
            "Planung teilweise fertig, empfohlen:",
            "  1. Abteilungen mit offenen Prüfungen prüfen",
            "  2. Mehr Prüfer in diesen Abteilungen einplanen",
            "  3. Abwesenheiten anpassen",
            "  4. Oder Ergebnis übernehmen und Rest manuell ergänzen",
        ]
    else:
        suggestions += [
            "Planung weitgehend fertig, empfohlen:",
            "  1. Unvollständige Zuweisungen prüfen",
            "  2. Wenige offene Zuweisungen manuell ergänzen",
            "  3. Oder mit angepassten Gewichten neu planen",
        ]
    if score is not None and score.hard < 0:
        suggestions += [
            "Hinweise zu harten Verletzungen:",
            "  - Prüfer eventuell mehrfach am selben Tag eingeplant",
            "  - Prüfer eventuell an Abwesenheitstagen eingeplant",
            "  - Konfiguration und Datenkonsistenz prüfen",
        ]

    return ScheduleDiagnosis(
        has_solution=True,
        is_feasible=feasible,
        completion_percentage=completion,
        overall_assessment=assessment,
        score=score,
        violations=violations,
        suggestions=suggestions,
    )
