from typing import Literal, NamedTuple

from config.schema import (
    EngineConfig,
    SolverConfig,
    TierConfig,
)


class ConstraintSpec(NamedTuple):
    """Katalogeintrag eines Constraints."""
    hard: bool
    direction: Literal["penalize", "reward"]
    default_weight: int          # bei harten Constraints: nur informativ
    description: str


# ─── Constraint-Katalog ───────────────────────────────────────────────────────
# Reihenfolge = Auswertungsreihenfolge = Reihenfolge der Verletzungsliste.

CONSTRAINT_CATALOG: dict[str, ConstraintSpec] = {
    # Harte Constraints
    "HC1": ConstraintSpec(True, "penalize", 1_000_000,
        "Keine Prüfung an Feiertagen; am Wochenende kein Verwaltungs-Prüfer"),
    "HC2": ConstraintSpec(True, "penalize", 1_000_000,
        "Prüfer 1 aus der Abteilung des Prüflings (oder Austausch-Abteilung)"),
    "HC3": ConstraintSpec(True, "penalize", 1_000_000,
        "Kein Prüfer im Tagdienst (außer Verwaltung)"),
    "HC4": ConstraintSpec(True, "penalize", 1_000_000,
        "Kein Prüfer zweimal am selben Tag"),
    "HC6": ConstraintSpec(True, "penalize", 1_000_000,
        "Prüfling nicht im Tagdienst; Prüfungstage genau 1 Tag auseinander"),
    "HC7": ConstraintSpec(True, "penalize", 1_000_000,
        "Prüfer 1 und 2 vorhanden; Prüfer 2 fremde Abteilung; Prüfer 1 ≠ Prüfer 2 Abteilung"),
    "HC8": ConstraintSpec(True, "penalize", 1_000_000,
        "Ersatzprüfer ist weder Prüfer 1 noch Prüfer 2"),
    "HC8b": ConstraintSpec(True, "penalize", 1_000_000,
        "Ersatzprüfer aus anderer Abteilung als Prüfer 1 und 2"),
    "HC9": ConstraintSpec(True, "penalize", 1_000_000,
        "Kein Einsatz während gemeldeter Abwesenheit"),
    # Weiche Constraints
    "SC1": ConstraintSpec(False, "reward", 200,
        "Nachtdienst-Prüfer bevorzugen"),
    "SC2": ConstraintSpec(False, "reward", 100,
        "Prüfer 2 aus empfohlener Abteilung (Stufe 1/2)"),
    "SC3": ConstraintSpec(False, "reward", 120,
        "Prüfer mit Ruhetag 1 bevorzugen"),
    "SC4": ConstraintSpec(False, "reward", 80,
        "Ersatzprüfer aus empfohlener Abteilung (Stufe 1/2)"),
    "SC5": ConstraintSpec(False, "reward", 80,
        "Prüfer mit Ruhetag 2 bevorzugen"),
    "SC6": ConstraintSpec(False, "reward", 50,
        "Prüfer 2 aus der tagesspezifisch empfohlenen Abteilung"),
    "SC7": ConstraintSpec(False, "reward", 60,
        "Verwaltung als Ersatzprüfer"),
    "SC8": ConstraintSpec(False, "reward", 30,
        "Stufe 3: mindestens eine Rolle aus dem Empfehlungs-Pool"),
    "SC9": ConstraintSpec(False, "reward", 20,
        "Zulässige Nutzung der Austausch-Abteilung"),
    "SC10": ConstraintSpec(False, "penalize", 5,
        "Arbeitslast: > 3 Einsätze und dicht aufeinanderfolgende Tage"),
    "SC11": ConstraintSpec(False, "penalize", 5,
        "Mehr als 4 Prüfungen an einem Tag"),
    "SC12": ConstraintSpec(False, "penalize", 50,
        "Ersatzprüfer-Einsätze gleichmäßig verteilen"),
    "SC13": ConstraintSpec(False, "penalize", 80,
        "Verwaltung nicht als Prüfer 1/2"),
    "SC14": ConstraintSpec(False, "reward", 110,
        "Prüfer 2 an Tag 1 und Tag 2 aus verschiedenen empfohlenen Abteilungen"),
    "SC15": ConstraintSpec(False, "penalize", 60,
        "Gleicher Prüfer 1 an beiden Tagen vermeiden"),
    "SC16": ConstraintSpec(False, "penalize", 500,
        "Prüfungen am Wochenende vermeiden"),
    "SC17": ConstraintSpec(False, "reward", 300,
        "Am Wochenende Nachtdienst-Prüfer bevorzugen"),
}

HARD_CONSTRAINT_IDS = [cid for cid, spec in CONSTRAINT_CATALOG.items() if spec.hard]
SOFT_CONSTRAINT_IDS = [cid for cid, spec in CONSTRAINT_CATALOG.items() if not spec.hard]


# ─── Solver-Stufen ────────────────────────────────────────────────────────────

def default_tiers() -> list[TierConfig]:
    """Standard-Stufen der adaptiven Eskalation.

    flash     ~15s   Tabu 5,  Forager 4,  kein Late Acceptance   → 0–30 %
    standard  ~120s  Tabu 7,  Forager 8,  Late Acceptance 100    → 30–60 %
    precise   ~180s  Tabu 10, Forager 16, Late Acceptance 200    → 60–95 %

    Eskalation: flash bei Qualitätsstufe > 2, standard bei > 1.
    """
    return [
        TierConfig(
            name="flash", max_runtime_seconds=15, min_runtime_seconds=3,
            stagnation_seconds=10, late_acceptance_size=0,
            entity_tabu_size=5, accepted_count_limit=4,
            upgrade_threshold=2, progress_start=0, progress_end=30,
        ),
        TierConfig(
            name="standard", max_runtime_seconds=120, min_runtime_seconds=3,
            stagnation_seconds=10, late_acceptance_size=100,
            entity_tabu_size=7, accepted_count_limit=8,
            upgrade_threshold=1, progress_start=30, progress_end=60,
        ),
        TierConfig(
            name="precise", max_runtime_seconds=180, min_runtime_seconds=3,
            stagnation_seconds=10, late_acceptance_size=200,
            entity_tabu_size=10, accepted_count_limit=16,
            upgrade_threshold=None, progress_start=60, progress_end=95,
        ),
    ]


def default_engine_config() -> EngineConfig:
    """Vollständige Default-Konfiguration."""
    return EngineConfig(solver=SolverConfig(tiers=default_tiers()))
