"""Fehlerklassen der Prüfer-Einsatzplanung."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from analysis.diagnostics import NoSolutionDiagnosis


class SchedulingError(Exception):
    """Basisklasse aller Fehler der Planungs-Engine."""


class InputError(SchedulingError, ValueError):
    """Ungültige Eingabedaten – wird vor dem Solver-Start ausgelöst.

    Beispiele: leere Prüflings-/Prüferliste, nicht lesbares Datum,
    leeres Datumsfenster, fehlerhafte Konfiguration.
    """


class NoSolutionError(SchedulingError):
    """Es existiert überhaupt keine (auch keine partielle) Lösung."""

    def __init__(self, message: str,
                 diagnosis: Optional["NoSolutionDiagnosis"] = None) -> None:
        super().__init__(message)
        self.diagnosis = diagnosis

    @property
    def causes(self) -> list[str]:
        """Kandidaten-Ursachen aus der Diagnose (leer ohne Diagnose)."""
        if self.diagnosis is None:
            return []
        return [c.cause for c in self.diagnosis.causes]
