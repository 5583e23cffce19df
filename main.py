"""Prüfer-Einsatzplanung: Haupt-CLI.

Verwendung:
  python main.py config init                    Standard-Konfiguration anlegen
  python main.py config show                    Konfiguration anzeigen
  python main.py generate                       Testdaten erzeugen (JSON)
  python main.py solve <problem.json>           Plan berechnen (adaptiv)
  python main.py solve <p.json> --tier flash    Nur eine Stufe
  python main.py score <plan.json>              Plan bewerten
  python main.py validate <plan.json>           Strukturelle Prüfung
  python main.py diagnose <datei.json>          Ursachen / Qualität analysieren
  python main.py duty 2025-10-06 --days 8       Dienstrotation anzeigen
"""

import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich import box

console = Console()

# Standard-Pfade
DEFAULT_PROBLEM_JSON = Path("output/problem.json")
DEFAULT_SOLUTION_JSON = Path("output/solution.json")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def _load_config(path: Optional[Path]):
    """Lädt die Konfiguration; ohne Datei gelten die Defaults."""
    from config.manager import ConfigManager
    from config.schema import EngineConfig
    from solver.errors import InputError

    mgr = ConfigManager()
    if path is None and mgr.first_run_check():
        return EngineConfig()
    try:
        return mgr.load(path)
    except (InputError, FileNotFoundError) as e:
        console.print(f"[red]Konfiguration fehlerhaft:[/red] {e}")
        sys.exit(1)


def _load_schedule(path: Path):
    """Liest einen ExamSchedule oder ein ProblemInput (wird dann angelegt)."""
    from models.exam_schedule import ExamSchedule
    from models.problem import ProblemInput
    from solver.errors import InputError

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    try:
        if "assignments" in raw:
            return ExamSchedule.model_validate(raw)
        return ProblemInput.model_validate(raw).to_schedule()
    except (ValidationError, InputError) as e:
        console.print(f"[red]Ungültige Eingabe in {path}:[/red]\n{e}")
        sys.exit(1)


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen oder anlegen."""


@cmd_config.command("show")
@click.pass_context
def config_show(ctx):
    """Zeigt die aktuelle Konfiguration an."""
    from config.manager import ConfigManager
    config = _load_config(ctx.obj.get("config_path"))
    ConfigManager().print_rich(config)


@cmd_config.command("init")
@click.option("--force", is_flag=True, default=False, help="Vorhandene Datei überschreiben.")
def config_init(force: bool):
    """Legt config/engine_config.yaml mit den Standardwerten an."""
    from config.defaults import default_engine_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            f"[yellow]{mgr.DEFAULT_CONFIG} existiert bereits.[/yellow] "
            "Mit [bold]--force[/bold] überschreiben."
        )
        return
    mgr.save(default_engine_config())


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--students", default=20, help="Anzahl Prüflinge.")
@click.option("--departments", default=7, help="Anzahl Abteilungen (1–10).")
@click.option("--teachers-per-department", default=4, help="Prüfer pro Abteilung.")
@click.option("--days", default=14, help="Länge des Datumsfensters in Tagen.")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--output", "-o", default=str(DEFAULT_PROBLEM_JSON), help="Ausgabepfad (JSON).")
def cmd_generate(students: int, departments: int, teachers_per_department: int,
                 days: int, seed: int, output: str):
    """Erzeugt Testdaten (Prüflinge, Prüfer, Datumsfenster)."""
    from data.fake_data import FakeDataGenerator

    console.print("[bold]Testdaten werden generiert...[/bold]")
    gen = FakeDataGenerator(
        num_students=students, num_departments=departments,
        teachers_per_department=teachers_per_department, num_days=days, seed=seed,
    )
    problem = gen.generate()
    gen.print_summary(problem)
    out_path = Path(output)
    problem.save_json(out_path)
    console.print(f"[green]✓[/green] Problem gespeichert: {out_path}")


# ─── SOLVE ────────────────────────────────────────────────────────────────────

@click.command("solve")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--tier", type=click.Choice(["flash", "standard", "precise", "adaptive"]),
              default="adaptive", help="Solver-Stufe (adaptive = mit Eskalation).")
@click.option("--seed", type=int, default=None, help="Zufalls-Seed.")
@click.option("--pins", "pins_path", type=click.Path(exists=True, path_type=Path),
              default=None, help="Pin-Datei (JSON) für Teil-Neuplanung.")
@click.option("--output", "-o", default=str(DEFAULT_SOLUTION_JSON), help="Ausgabepfad (JSON).")
@click.pass_context
def cmd_solve(ctx, datei: Path, tier: str, seed: Optional[int],
              pins_path: Optional[Path], output: str):
    """Berechnet einen Prüfungsplan."""
    from analysis.solution_validator import SolutionValidator
    from solver import NoSolutionError, PinManager, SchedulingError, solve, solve_adaptive
    from solver.duty import DateShiftCalculator

    config = _load_config(ctx.obj.get("config_path"))
    if seed is not None:
        config.solver.seed = seed
    schedule = _load_schedule(datei)

    if pins_path is not None:
        pm = PinManager()
        pm.load_json(pins_path)
        unpinned = pm.apply(schedule)
        console.print(f"[cyan]{len(pm)} Pin(s) geladen[/cyan], {len(unpinned)} aufgehoben")
    pin_snapshot = PinManager.snapshot(schedule)

    console.print(Panel(schedule.summary(), title="Problem", border_style="cyan"))

    with Progress(
        TextColumn("[bold]{task.fields[tier]:<9}"),
        BarColumn(),
        TextColumn("{task.percentage:>5.1f}%"),
        TextColumn("[dim]{task.fields[score]}"),
        console=console,
    ) as progress:
        task = progress.add_task("solve", total=100, tier="", score="")

        def sink(event):
            progress.update(task, completed=event.percent, tier=event.tier_name,
                            score=event.score_text)

        try:
            if tier == "adaptive":
                result, score, reached = solve_adaptive(
                    schedule, progress_sink=sink, config=config,
                )
            else:
                result, score = solve(schedule, tier, config=config, progress_sink=sink)
                reached = tier
        except NoSolutionError as e:
            console.print(f"[red]Keine Lösung:[/red] {e}")
            if e.diagnosis is not None:
                e.diagnosis.print_rich(console)
            sys.exit(2)
        except SchedulingError as e:
            console.print(f"[red]Eingabefehler:[/red] {e}")
            sys.exit(1)

    color = "green" if score.is_feasible else "red"
    console.print(f"\n[bold]Ergebnis:[/bold] [{color}]{score}[/{color}] (Stufe: {reached})")
    report = SolutionValidator(DateShiftCalculator(config.duty)).validate(result, pin_snapshot)
    if not report.is_valid:
        report.print_rich()

    out_path = Path(output)
    result.save_json(out_path)
    console.print(f"[green]✓[/green] Plan gespeichert: {out_path}")


# ─── SCORE ────────────────────────────────────────────────────────────────────

@click.command("score")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--report", "show_report", is_flag=True, default=False,
              help="Qualitätsbericht (Score pro Constraint, Auslastung) anzeigen.")
@click.option("--limit", default=30, help="Maximal angezeigte Verletzungen.")
@click.pass_context
def cmd_score(ctx, datei: Path, show_report: bool, limit: int):
    """Bewertet einen Plan ohne Suche."""
    from analysis.quality_report import QualityAnalyzer
    from solver import SolvingContext
    from solver.api import validate_schedule
    from solver.errors import InputError
    from solver.scoring import ScoringEngine

    config = _load_config(ctx.obj.get("config_path"))
    schedule = _load_schedule(datei)
    try:
        validate_schedule(schedule)
    except InputError as e:
        console.print(f"[red]Eingabefehler:[/red] {e}")
        sys.exit(1)
    sctx = SolvingContext(config, schedule.constraint_config)
    ScoringEngine(sctx).score(schedule).print_rich(console, limit=limit)
    if show_report:
        QualityAnalyzer(sctx).analyze(schedule).print_rich()


# ─── VALIDATE ─────────────────────────────────────────────────────────────────

@click.command("validate")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--pins", "pins_path", type=click.Path(exists=True, path_type=Path),
              default=None, help="Pin-Datei zum Abgleich.")
@click.pass_context
def cmd_validate(ctx, datei: Path, pins_path: Optional[Path]):
    """Prüft die strukturellen Eigenschaften eines Plans."""
    from analysis.solution_validator import SolutionValidator
    from solver.duty import DateShiftCalculator
    from solver.pinning import PinManager

    config = _load_config(ctx.obj.get("config_path"))
    schedule = _load_schedule(datei)
    snapshot = None
    if pins_path is not None:
        pm = PinManager()
        pm.load_json(pins_path)
        snapshot = {p.assignment_id: p.snapshot() for p in pm.get_pins() if p.is_complete()}
    report = SolutionValidator(DateShiftCalculator(config.duty)).validate(schedule, snapshot)
    report.print_rich()
    if not report.is_valid:
        sys.exit(1)


# ─── DIAGNOSE ─────────────────────────────────────────────────────────────────

@click.command("diagnose")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def cmd_diagnose(ctx, datei: Path):
    """Sucht Ursachen für Unlösbarkeit und bewertet einen vorhandenen Plan."""
    from analysis.diagnostics import FeasibilityAnalyzer, diagnose
    from solver import SolvingContext
    from solver.scoring import ScoringEngine

    config = _load_config(ctx.obj.get("config_path"))
    schedule = _load_schedule(datei)
    sctx = SolvingContext(config, schedule.constraint_config)

    console.print("[bold]Machbarkeitsanalyse[/bold]")
    FeasibilityAnalyzer(sctx).analyze(schedule).print_rich(console)

    if any(a.exam_date for a in schedule.assignments):
        result = ScoringEngine(sctx).score(schedule)
        schedule.score = result.score
        hard_ids = [v.constraint_id for v in result.hard_violations()]
        diagnose(schedule, hard_ids).print_rich(console)


# ─── DUTY ─────────────────────────────────────────────────────────────────────

@click.command("duty")
@click.argument("start")
@click.option("--days", default=7, help="Anzahl Tage.")
@click.pass_context
def cmd_duty(ctx, start: str, days: int):
    """Zeigt die Dienstrotation ab einem Datum."""
    from solver.duty import DateShiftCalculator, parse_exam_date
    from solver.errors import InputError

    config = _load_config(ctx.obj.get("config_path"))
    try:
        first = parse_exam_date(start)
    except InputError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    calc = DateShiftCalculator(config.duty)

    table = Table(title=f"Dienstrotation (Anker {config.duty.anchor_date})", box=box.ROUNDED)
    table.add_column("Datum")
    table.add_column("Tagdienst", style="red")
    table.add_column("Nachtdienst", style="cyan")
    table.add_column("Ruhetag 1", style="green")
    table.add_column("Ruhetag 2", style="green")
    for offset in range(days):
        duty = calc.for_date(first + timedelta(days=offset))
        table.add_row(duty.date, duty.day_shift, duty.night_shift, duty.rest1, duty.rest2)
    console.print(table)


# ─── CLI ──────────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug-Ausgaben.")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Pfad zur YAML-Konfiguration (Standard: config/engine_config.yaml).")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[Path]):
    """Prüfer-Einsatzplanung mit Dienstrotation.

    Starten Sie mit: python main.py generate && python main.py solve output/problem.json
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# Befehle registrieren
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_solve)
cli.add_command(cmd_score)
cli.add_command(cmd_validate)
cli.add_command(cmd_diagnose)
cli.add_command(cmd_duty)


def main():
    """Einstiegspunkt."""
    cli(obj={})


if __name__ == "__main__":
    main()
