"""Testdaten-Erzeugung."""
