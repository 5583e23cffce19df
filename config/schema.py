import logging
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


# ─── CONSTRAINTS (Gewichte + Aktivierung) ───

class ConstraintSetting(BaseModel):
    """Einstellung eines einzelnen Constraints."""
    # Constraint aktiv?
    enabled: bool = True
    # Gewicht pro Treffer; None = Default aus dem Katalog
    weight: Optional[int] = Field(None, ge=0,
        description="Gewicht pro Treffer (None = Katalog-Default)")


class ConstraintConfig(BaseModel):
    """Konfiguration aller harten und weichen Constraints.

    Fehlende IDs werden mit den Katalog-Defaults aufgefüllt, unbekannte IDs
    werden ignoriert (mit Warnung). Alle harten Constraints teilen sich
    EIN dominierendes Gewicht (hard_weight) – einzelne HC-Gewichte werden
    nicht ausgewertet.
    """
    # Gemeinsames Gewicht aller harten Constraints (auf der Hard-Ebene)
    hard_weight: int = Field(1_000_000, ge=1,
        description="Gewicht pro Verletzung eines harten Constraints")
    # Einstellungen pro Constraint-ID ("HC1" … "SC17")
    settings: dict[str, ConstraintSetting] = Field(default_factory=dict,
        description="Einstellungen pro Constraint-ID")

    @model_validator(mode="after")
    def _merge_with_catalog(self):
        from config.defaults import CONSTRAINT_CATALOG
        merged: dict[str, ConstraintSetting] = {}
        for cid, setting in self.settings.items():
            if cid not in CONSTRAINT_CATALOG:
                logger.warning(f"Unbekannte Constraint-ID '{cid}' wird ignoriert")
                continue
            if CONSTRAINT_CATALOG[cid].hard and setting.weight is not None:
                logger.warning(
                    f"Gewicht für harten Constraint {cid} wird ignoriert "
                    f"(gemeinsames hard_weight={self.hard_weight})"
                )
                setting = setting.model_copy(update={"weight": None})
            merged[cid] = setting
        for cid in CONSTRAINT_CATALOG:
            merged.setdefault(cid, ConstraintSetting())
        # Katalog-Reihenfolge beibehalten
        self.settings = {cid: merged[cid] for cid in CONSTRAINT_CATALOG}
        return self

    @classmethod
    def from_mapping(cls, mapping: Optional[dict] = None,
                     hard_weight: Optional[int] = None) -> "ConstraintConfig":
        """Erzeugt eine Config aus {id: {enabled, weight}}.

        Werte dürfen auch ein bool (nur enabled) oder eine Zahl (nur weight)
        sein.
        """
        settings: dict[str, ConstraintSetting] = {}
        for cid, raw in (mapping or {}).items():
            if isinstance(raw, ConstraintSetting):
                settings[cid] = raw
            elif isinstance(raw, bool):
                settings[cid] = ConstraintSetting(enabled=raw)
            elif isinstance(raw, int):
                settings[cid] = ConstraintSetting(weight=raw)
            else:
                settings[cid] = ConstraintSetting.model_validate(raw)
        data: dict = {"settings": settings}
        if hard_weight is not None:
            data["hard_weight"] = hard_weight
        return cls(**data)

    def is_enabled(self, constraint_id: str) -> bool:
        """True wenn der Constraint aktiv ist (unbekannte IDs: False)."""
        setting = self.settings.get(constraint_id)
        return setting is not None and setting.enabled

    def weight(self, constraint_id: str) -> int:
        """Effektives Gewicht eines Constraints."""
        from config.defaults import CONSTRAINT_CATALOG
        entry = CONSTRAINT_CATALOG[constraint_id]
        if entry.hard:
            return self.hard_weight
        setting = self.settings.get(constraint_id)
        if setting is None or setting.weight is None:
            return entry.default_weight
        return setting.weight

    def as_mapping(self) -> dict[str, dict]:
        """Effektive Einstellungen als {id: {enabled, weight}}."""
        return {
            cid: {"enabled": s.enabled, "weight": self.weight(cid)}
            for cid, s in self.settings.items()
        }


# ─── DIENSTPLAN-ROTATION ───

class DutyRotationConfig(BaseModel):
    """4-Gruppen-Rotation (Tagdienst / Nachtdienst / Ruhetag 1 / Ruhetag 2).

    Position p = (Datum − Ankerdatum) mod 4:
      Nachtdienst = teams[p], Tagdienst = teams[(p+1) mod 4],
      Ruhetage = übrige Gruppen in Listenreihenfolge.
    """
    # Ankerdatum der Rotation (Position 0)
    anchor_date: date = Field(date(2025, 9, 4),
        description="Ankerdatum der Rotation")
    # Die vier rotierenden Gruppen in fester Reihenfolge
    teams: list[str] = Field(
        default=["一组", "二组", "三组", "四组"],
        description="Rotierende Gruppen (genau 4)")
    # Gruppenbezeichnungen der Verwaltung (rotiert nie)
    admin_team_names: list[str] = Field(
        default=["无", "行政班"],
        description="Gruppennamen der Verwaltung (keine Rotation)")
    # Austauschbare Abteilungen für HC2 (kanonische Codes)
    interchange_pairs: list[tuple[str, str]] = Field(
        default=[("三", "七")],
        description="Gegenseitig austauschbare Abteilungen")

    @field_validator("teams")
    @classmethod
    def _four_distinct_teams(cls, v: list[str]) -> list[str]:
        if len(v) != 4 or len(set(v)) != 4:
            raise ValueError(f"Genau 4 verschiedene Gruppen erwartet, erhalten: {v}")
        return v


# ─── SOLVER-STUFEN ───

class TierConfig(BaseModel):
    """Eine Solver-Stufe (flash / standard / precise)."""
    # Name der Stufe
    name: Literal["flash", "standard", "precise"]
    # Harte Zeitgrenze der Stufe in Sekunden
    max_runtime_seconds: float = Field(gt=0,
        description="Maximale Laufzeit der Stufe (Sekunden)")
    # Mindestlaufzeit, bevor "akzeptabel"/Stagnation greifen
    min_runtime_seconds: float = Field(3.0, ge=0,
        description="Mindestlaufzeit (Sekunden)")
    # Stagnationsfenster ohne Verbesserung des besten Scores
    stagnation_seconds: float = Field(10.0, gt=0,
        description="Abbruch nach so vielen Sekunden ohne Verbesserung")
    # Late-Acceptance-Listengröße (0 = aus, nur Hill-Climbing + Tabu)
    late_acceptance_size: int = Field(0, ge=0)
    # Entity-Tabu: so viele zuletzt bewegte Zuweisungen sind gesperrt
    entity_tabu_size: int = Field(5, ge=0)
    # Forager: akzeptierte Kandidaten pro Schritt, bester wird ausgeführt
    accepted_count_limit: int = Field(4, ge=1)
    # Eskalation wenn Qualitätsstufe > Schwelle (None = letzte Stufe)
    upgrade_threshold: Optional[int] = Field(None, ge=1, le=4)
    # Fortschrittsbereich dieser Stufe in Prozent
    progress_start: float = Field(0.0, ge=0, le=100)
    progress_end: float = Field(30.0, ge=0, le=100)
    # Optionale Schrittgrenze (reproduzierbare Läufe/Tests)
    step_limit: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min_runtime_seconds > self.max_runtime_seconds:
            raise ValueError(
                f"Stufe {self.name}: min_runtime ({self.min_runtime_seconds}) "
                f"> max_runtime ({self.max_runtime_seconds})"
            )
        if self.progress_start >= self.progress_end:
            raise ValueError(
                f"Stufe {self.name}: Fortschrittsbereich "
                f"[{self.progress_start}, {self.progress_end}] ist leer"
            )
        return self


class TerminationConfig(BaseModel):
    """Abbruchkriterien (gelten für jede Stufe)."""
    # Hard = 0 und Soft ≥ Schwelle gilt nach Mindestlaufzeit als akzeptabel
    acceptable_soft_score: int = Field(-500, le=0)
    # Anzahl Score-Snapshots für die Konvergenzprüfung
    convergence_window: int = Field(10, ge=2)
    # Konvergiert wenn |Soft-Delta| über das Fenster kleiner als dieser Wert
    convergence_soft_delta: int = Field(100, ge=0)


class ProgressConfig(BaseModel):
    """Fortschrittsmeldungen."""
    # Minimaler Abstand zweier Meldungen (Millisekunden)
    throttle_ms: int = Field(300, ge=0)
    # Spätestens nach so vielen Millisekunden eine Meldung (Heartbeat)
    heartbeat_ms: int = Field(2000, ge=1)
    # Höchstens so viele Meldungen warten auf den Empfänger (ältere verfallen)
    max_pending_events: int = Field(8, ge=2)
    # Bereich der Nachbearbeitung nach der letzten Stufe
    post_processing_start: float = Field(95.0, ge=0, le=100)
    post_processing_end: float = Field(100.0, ge=0, le=100)


def _default_tiers() -> list[TierConfig]:
    from config.defaults import default_tiers
    return default_tiers()


class SolverConfig(BaseModel):
    """Solver-Konfiguration: Stufen, Abbruch, Fortschritt, Seed."""
    # Stufen in Eskalationsreihenfolge
    tiers: list[TierConfig] = Field(default_factory=_default_tiers)
    termination: TerminationConfig = Field(default_factory=TerminationConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    # Zufalls-Seed (None = nicht reproduzierbar)
    seed: Optional[int] = Field(None, description="Zufalls-Seed")

    @field_validator("tiers")
    @classmethod
    def _non_empty_tiers(cls, v: list[TierConfig]) -> list[TierConfig]:
        if not v:
            raise ValueError("Mindestens eine Solver-Stufe erforderlich")
        return v

    def tier(self, name: str) -> TierConfig:
        """Gibt die Stufe mit diesem Namen zurück."""
        for t in self.tiers:
            if t.name == name:
                return t
        raise KeyError(f"Stufe '{name}' nicht konfiguriert")


# ─── GESAMT-CONFIG ───

class EngineConfig(BaseModel):
    """Gesamtkonfiguration der Planungs-Engine."""
    duty: DutyRotationConfig = Field(default_factory=DutyRotationConfig)
    constraints: ConstraintConfig = Field(default_factory=ConstraintConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
