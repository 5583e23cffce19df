"""Konfigurationsmanager: Laden, Speichern und Anzeigen der Engine-Konfiguration.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from config.defaults import CONSTRAINT_CATALOG
from config.schema import EngineConfig
from solver.errors import InputError

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Prüfer-Einsatzplanung: Engine-Konfiguration
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "duty": (
        "Dienstplan-Rotation",
        "4-Gruppen-Zyklus ab Ankerdatum. Verwaltung rotiert nie.",
    ),
    "constraints": (
        "Constraints",
        "enabled/weight pro ID. Harte Constraints teilen sich hard_weight.\n"
        "Fehlende IDs = Default, unbekannte IDs werden ignoriert.",
    ),
    "solver": (
        "Solver",
        "Stufen flash → standard → precise; Eskalation bei unzureichender Qualität.",
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "engine_config.yaml"

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> EngineConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py config init' aus."
            )
        try:
            with open(target, "r", encoding="utf-8") as f:
                raw = yaml.load(f)
        except YAMLError as e:
            raise InputError(f"Konfigurationsdatei kein gültiges YAML: {target}\n{e}") from e
        if raw is None:
            return EngineConfig()
        try:
            # ruamel liefert CommentedMap/CommentedSeq → über JSON normalisieren
            return EngineConfig.model_validate(json.loads(json.dumps(raw, default=str)))
        except ValidationError as e:
            raise InputError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    # ─── Speichern ───

    def save(self, config: EngineConfig, path: Optional[Path] = None) -> Path:
        """Speichere Config als YAML mit deutschen Kommentaren."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")
        return target

    def _build_commented_yaml(self, config: EngineConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        # Inline-Kommentar pro Constraint (Beschreibung aus dem Katalog)
        settings = CommentedMap(cm["constraints"]["settings"])
        for cid in list(settings):
            entry = CommentedMap(settings[cid])
            entry.yaml_add_eol_comment(CONSTRAINT_CATALOG[cid].description, "weight")
            settings[cid] = entry
        constraints = CommentedMap(cm["constraints"])
        constraints["settings"] = settings
        cm["constraints"] = constraints

        return cm

    # ─── Anzeige ───

    def print_rich(self, config: EngineConfig) -> None:
        """Zeigt Rotation, Constraint-Gewichte und Stufen an."""
        duty = config.duty
        console.print(Panel(
            f"Anker: [bold]{duty.anchor_date.isoformat()}[/bold]  |  "
            f"Gruppen: {' → '.join(duty.teams)}  |  "
            f"Verwaltung: {', '.join(duty.admin_team_names)}",
            title="Dienstplan-Rotation",
            border_style="cyan",
        ))

        table = Table(title="Constraints", box=box.ROUNDED)
        table.add_column("ID", style="bold")
        table.add_column("Art")
        table.add_column("Aktiv")
        table.add_column("Gewicht", justify="right")
        table.add_column("Beschreibung")
        cc = config.constraints
        for cid, spec in CONSTRAINT_CATALOG.items():
            kind = "[red]hart[/red]" if spec.hard else (
                "Bonus" if spec.direction == "reward" else "Malus")
            active = "[green]✓[/green]" if cc.is_enabled(cid) else "[dim]–[/dim]"
            table.add_row(cid, kind, active, str(cc.weight(cid)), spec.description)
        console.print(table)

        tiers = Table(title="Solver-Stufen", box=box.ROUNDED)
        tiers.add_column("Stufe", style="bold")
        tiers.add_column("Max (s)", justify="right")
        tiers.add_column("Late Acc.", justify="right")
        tiers.add_column("Tabu", justify="right")
        tiers.add_column("Forager", justify="right")
        tiers.add_column("Eskalation")
        tiers.add_column("Fortschritt")
        for t in config.solver.tiers:
            tiers.add_row(
                t.name,
                f"{t.max_runtime_seconds:g}",
                str(t.late_acceptance_size),
                str(t.entity_tabu_size),
                str(t.accepted_count_limit),
                f"Qualität > {t.upgrade_threshold}" if t.upgrade_threshold else "–",
                f"{t.progress_start:g}–{t.progress_end:g} %",
            )
        console.print(tiers)
