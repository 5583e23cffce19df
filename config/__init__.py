"""Konfiguration der Prüfer-Einsatzplanung."""
