"""Testdaten-Generator für die Prüfer-Einsatzplanung.

Erzeugt realistische Fake-Daten mit absichtlichen Engpässen für robuste Tests.

Absichtliche Engpässe:
  1. Gemischte Schreibweisen: Abteilungen als "三室", "第3科室", "区域三室", "3" …
  2. Verwaltung: einige Prüfer ohne Dienstrotation ("行政班")
  3. Abwesenheiten: ca. 15 % der Prüfer sind 2–4 Tage nicht verfügbar
  4. Wochenenden im Datumsfenster (SC16 / SC17)

Lösbarkeits-Garantien:
  - Jede Abteilung hat mindestens 3 Prüfer in verschiedenen Dienstgruppen
  - Empfohlene Abteilungen sind nie die eigene Abteilung des Prüflings
"""

import random
from datetime import date, timedelta
from typing import Optional

from config.schema import DutyRotationConfig
from models.problem import ProblemInput
from models.student import Student
from models.teacher import Teacher, UnavailablePeriod
from solver.departments import NUMERALS

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_SURNAMES = [
    "王", "李", "张", "刘", "陈", "杨", "黄", "赵", "吴", "周", "徐", "孙",
    "马", "朱", "胡", "郭", "何", "高", "林", "罗", "郑", "梁", "谢", "宋",
]

_GIVEN_NAMES = [
    "伟", "芳", "娜", "敏", "静", "丽", "强", "磊", "军", "洋", "勇", "艳",
    "杰", "娟", "涛", "明", "超", "秀英", "霞", "平", "刚", "桂英", "建华", "志强",
]

# Schreibvarianten einer Abteilung (n = Nummer, c = Zahlzeichen)
_DEPT_SPELLINGS = ["{c}室", "{c}", "第{n}科室", "区域{c}室", "{n}室"]

_DAY1_SUBJECTS = [["现场", "模拟机"], ["模拟机"], ["现场"]]
_DAY2_SUBJECTS = [["口试"], ["模拟机", "口试"]]


class FakeDataGenerator:
    """Generiert Prüflinge, Prüfer und ein Datumsfenster (reproduzierbar per Seed)."""

    def __init__(
        self,
        num_students: int = 20,
        num_departments: int = 7,
        teachers_per_department: int = 4,
        num_admin: int = 3,
        start_date: date = date(2025, 10, 6),
        num_days: int = 14,
        rotation: Optional[DutyRotationConfig] = None,
        seed: Optional[int] = None,
    ) -> None:
        if not 1 <= num_departments <= len(NUMERALS):
            raise ValueError(f"num_departments muss zwischen 1 und {len(NUMERALS)} liegen")
        self.num_students = num_students
        self.departments = list(NUMERALS[:num_departments])
        self.teachers_per_department = teachers_per_department
        self.num_admin = num_admin
        self.start_date = start_date
        self.num_days = num_days
        self.rotation = rotation or DutyRotationConfig()
        self.rng = random.Random(seed)
        self._used_names: set[str] = set()

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=self.num_days - 1)

    def _name(self) -> str:
        for _ in range(100):
            name = self.rng.choice(_SURNAMES) + self.rng.choice(_GIVEN_NAMES)
            if name not in self._used_names:
                self._used_names.add(name)
                return name
        # Namensraum erschöpft: Nummer anhängen
        name = f"{self.rng.choice(_SURNAMES)}{len(self._used_names)}"
        self._used_names.add(name)
        return name

    def _dept_spelling(self, numeral: str) -> str:
        n = NUMERALS.index(numeral) + 1
        return self.rng.choice(_DEPT_SPELLINGS).format(c=numeral, n=n)

    # ─── Prüfer ──────────────────────────────────────────────────────────────

    def _unavailable(self) -> list[UnavailablePeriod]:
        if self.rng.random() >= 0.15:
            return []
        offset = self.rng.randrange(self.num_days)
        length = self.rng.randint(2, 4)
        start = self.start_date + timedelta(days=offset)
        return [UnavailablePeriod(
            start_date=start,
            end_date=start + timedelta(days=length - 1),
            reason=self.rng.choice(["培训", "休假", "出差"]),
        )]

    def generate_teachers(self) -> list[Teacher]:
        teams = self.rotation.teams
        teachers = []
        counter = 1
        for d_index, numeral in enumerate(self.departments):
            for i in range(self.teachers_per_department):
                teachers.append(Teacher(
                    id=f"T{counter:03d}",
                    name=self._name(),
                    department=self._dept_spelling(numeral),
                    # Versetzt, damit jede Abteilung mehrere Gruppen abdeckt
                    team=teams[(d_index + i) % len(teams)],
                    unavailable_periods=self._unavailable(),
                ))
                counter += 1
        admin_team = self.rotation.admin_team_names[-1]
        for i in range(self.num_admin):
            teachers.append(Teacher(
                id=f"T{counter:03d}",
                name=self._name(),
                department=self._dept_spelling(self.departments[i % len(self.departments)]),
                team=admin_team,
            ))
            counter += 1
        return teachers

    # ─── Prüflinge ───────────────────────────────────────────────────────────

    def generate_students(self) -> list[Student]:
        students = []
        for i in range(1, self.num_students + 1):
            own = self.rng.choice(self.departments)
            others = [d for d in self.departments if d != own]
            recs = self.rng.sample(others, k=min(3, len(others)))
            rec1 = recs[0] if recs else None
            rec2 = recs[1] if len(recs) > 1 and self.rng.random() < 0.8 else None
            backup = recs[2] if len(recs) > 2 and self.rng.random() < 0.4 else None
            students.append(Student(
                id=f"S{i:03d}",
                name=self._name(),
                department=self._dept_spelling(own),
                team=self.rng.choice(self.rotation.teams),
                exam_days=2 if self.rng.random() < 0.9 else 1,
                recommended_examiner1_dept=rec1,
                recommended_examiner2_dept=rec2,
                recommended_backup_dept=backup,
                day1_subjects=list(self.rng.choice(_DAY1_SUBJECTS)),
                day2_subjects=list(self.rng.choice(_DAY2_SUBJECTS)),
            ))
        return students

    # ─── Gesamt ──────────────────────────────────────────────────────────────

    def generate(self) -> ProblemInput:
        """Erzeugt ein vollständiges Problem (Prüfer zuerst, dann Prüflinge)."""
        teachers = self.generate_teachers()
        students = self.generate_students()
        return ProblemInput(
            students=students,
            teachers=teachers,
            start_date=self.start_date,
            end_date=self.end_date,
        )

    def print_summary(self, problem: ProblemInput) -> None:
        """Gibt eine Übersicht der erzeugten Daten über Rich aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        admin = [t for t in problem.teachers if t.is_admin(self.rotation.admin_team_names)]
        absent = [t for t in problem.teachers if t.unavailable_periods]
        two_day = [s for s in problem.students if s.needs_day2]

        table = Table(title="Testdaten", box=box.ROUNDED, show_header=False)
        table.add_column("Was", style="bold")
        table.add_column("Wert", justify="right")
        table.add_row("Prüflinge", f"{len(problem.students)} ({len(two_day)} zweitägig)")
        table.add_row("Prüfer", str(len(problem.teachers)))
        table.add_row("  davon Verwaltung", str(len(admin)))
        table.add_row("  mit Abwesenheit", str(len(absent)))
        table.add_row("Abteilungen", ", ".join(self.departments))
        table.add_row("Zeitraum", f"{problem.start_date} – {problem.end_date}")
        console.print(table)
