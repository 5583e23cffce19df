"""Qualitätsbericht für fertige Prüfungspläne.

Score-Aufschlüsselung pro Constraint und Prüfer-Auslastung
(Einsätze gesamt, je Rolle, Ersatzeinsätze, Fairness).
"""

from collections import defaultdict
from typing import Optional

from pydantic import BaseModel

from models.exam_assignment import ROLE_FIELDS
from models.exam_schedule import ExamSchedule, HardSoftScore
from solver.context import SolvingContext
from solver.scoring import ConstraintTotal, ScoringEngine


# ─── Metriken-Modelle ─────────────────────────────────────────────────────────

class TeacherWorkload(BaseModel):
    """Auslastung eines Prüfers."""

    teacher_id: str
    name: str
    department: str
    total: int
    as_examiner1: int
    as_examiner2: int
    as_backup: int
    dates: list[str]


class QualityReport(BaseModel):
    """Vollständiger Qualitätsbericht für einen ExamSchedule."""

    score: HardSoftScore
    constraint_totals: list[ConstraintTotal]
    teacher_workload: list[TeacherWorkload]
    weekend_exams: int
    max_exams_per_day: int
    workload_fairness_index: float   # Jain's fairness index (1.0 = perfekt)

    def print_rich(self) -> None:
        """Gibt den Qualitätsbericht formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()

        fairness_color = (
            "green" if self.workload_fairness_index >= 0.9
            else "yellow" if self.workload_fairness_index >= 0.75
            else "red"
        )
        score_color = "green" if self.score.is_feasible else "red"
        console.print(Panel(
            f"Score: [{score_color}]{self.score}[/{score_color}]\n"
            f"Wochenend-Prüfungen: [bold]{self.weekend_exams}[/bold] | "
            f"Max. Prüfungen pro Tag: [bold]{self.max_exams_per_day}[/bold]\n"
            f"Auslastungs-Fairness (Jain): "
            f"[{fairness_color}]{self.workload_fairness_index:.4f}[/{fairness_color}] "
            f"(1.0 = perfekt)",
            title="Qualitätsbericht – Übersicht",
            border_style="cyan",
        ))

        c_table = Table(title="Score pro Constraint", box=box.ROUNDED)
        c_table.add_column("ID", width=6)
        c_table.add_column("Beschreibung")
        c_table.add_column("Treffer", justify="right", width=8)
        c_table.add_column("Score", justify="right", width=12)
        for t in self.constraint_totals:
            color = "red" if t.score < 0 else "green"
            c_table.add_row(t.constraint_id, t.description, str(t.matches),
                            f"[{color}]{t.score}[/{color}]")
        console.print(c_table)

        t_table = Table(title="Prüfer-Auslastung", box=box.ROUNDED)
        t_table.add_column("ID", width=8)
        t_table.add_column("Name", width=16)
        t_table.add_column("Abt.", width=6)
        t_table.add_column("Gesamt", justify="right", width=7)
        t_table.add_column("P1", justify="right", width=4)
        t_table.add_column("P2", justify="right", width=4)
        t_table.add_column("Ersatz", justify="right", width=7)
        t_table.add_column("Status", width=10)
        for m in self.teacher_workload:
            status = "[yellow]> 3[/yellow]" if m.total > 3 else (
                "[dim]frei[/dim]" if m.total == 0 else "[green]OK[/green]")
            t_table.add_row(
                m.teacher_id, m.name, m.department, str(m.total),
                str(m.as_examiner1), str(m.as_examiner2), str(m.as_backup), status,
            )
        console.print(t_table)


# ─── Analyzer ─────────────────────────────────────────────────────────────────

class QualityAnalyzer:
    """Berechnet Qualitätsmetriken für einen fertigen ExamSchedule."""

    def __init__(self, ctx: Optional[SolvingContext] = None) -> None:
        self.ctx = ctx

    def analyze(self, schedule: ExamSchedule) -> QualityReport:
        ctx = self.ctx or SolvingContext(constraint_config=schedule.constraint_config)
        result = ScoringEngine(ctx).score(schedule)
        workload = self._teacher_workload(schedule)

        # Jain's Fairness Index über die Einsätze aller Prüfer
        totals = [m.total for m in workload]
        n = len(totals)
        sum_sq = sum(t * t for t in totals)
        fairness = (sum(totals) ** 2) / (n * sum_sq) if sum_sq > 0 else 1.0

        per_day: dict[str, int] = defaultdict(int)
        weekend = 0
        for a in schedule.assignments:
            if a.exam_date is None:
                continue
            per_day[a.exam_date] += 1
            if ctx.is_weekend(a.exam_date):
                weekend += 1

        return QualityReport(
            score=result.score,
            constraint_totals=result.totals,
            teacher_workload=workload,
            weekend_exams=weekend,
            max_exams_per_day=max(per_day.values(), default=0),
            workload_fairness_index=round(fairness, 4),
        )

    def _teacher_workload(self, schedule: ExamSchedule) -> list[TeacherWorkload]:
        counts = {t.id: dict.fromkeys(ROLE_FIELDS, 0) for t in schedule.teachers}
        dates: dict[str, set[str]] = defaultdict(set)
        for a in schedule.assignments:
            for role, tid in a.role_teachers():
                if tid in counts:
                    counts[tid][role] += 1
                    if a.exam_date:
                        dates[tid].add(a.exam_date)
        metrics = []
        for t in schedule.teachers:
            c = counts[t.id]
            metrics.append(TeacherWorkload(
                teacher_id=t.id,
                name=t.name,
                department=t.department or "–",
                total=sum(c.values()),
                as_examiner1=c["examiner1_id"],
                as_examiner2=c["examiner2_id"],
                as_backup=c["backup_examiner_id"],
                dates=sorted(dates[t.id]),
            ))
        return sorted(metrics, key=lambda m: (-m.total, m.teacher_id))
