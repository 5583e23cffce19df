"""Auswertung fertiger Pläne: Diagnose, Validierung, Qualitätsbericht."""
