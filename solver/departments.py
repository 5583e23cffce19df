"""Normalisierung von Abteilungsbezeichnungen.

Viele Schreibweisen ("三", "三室", "3室", "区域三室", "第3科室", "3") werden auf
einen kanonischen Code (chinesisches Zahlzeichen) abgebildet. Texte, die
eigentlich Prüfungsfächer sind ("模拟机", "现场", "口试", ...), werden
zurückgewiesen (None) und nie stillschweigend umgedeutet.
"""

import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

NUMERALS = ("一", "二", "三", "四", "五", "六", "七", "八", "九", "十")

# Prüfungsfach-Schlüsselwörter, die fälschlich als Abteilung erfasst wurden
SUBJECT_KEYWORDS = ("模拟机", "现场", "口试", "理论", "实操", "实践", "笔试")

_EXACT: dict[str, str] = {}
for _n, _numeral in enumerate(NUMERALS, start=1):
    for _variant in (_numeral, f"{_numeral}室", f"{_n}室", f"区域{_numeral}室",
                     f"第{_n}科室", str(_n)):
        _EXACT[_variant] = _numeral

# Unscharfe Suche in Katalogreihenfolge: "一室"/"1室" vor "二室"/"2室" ...
_CONTAINS: list[tuple[tuple[str, str], str]] = [
    ((f"{numeral}室", f"{n}室"), numeral)
    for n, numeral in enumerate(NUMERALS, start=1)
]


def normalize_department(raw: Optional[str]) -> Optional[str]:
    """Kanonischer Abteilungscode oder None (fehlend / Prüfungsfach)."""
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if any(k in text for k in SUBJECT_KEYWORDS):
        return None
    exact = _EXACT.get(text)
    if exact is not None:
        return exact
    for needles, numeral in _CONTAINS:
        if any(n in text for n in needles):
            return numeral
    return text


class DepartmentNormalizer:
    """Memoisierende Normalisierung, eine Instanz pro Solver-Lauf."""

    def __init__(self, interchange_pairs: Iterable[tuple[str, str]] = (("三", "七"),)) -> None:
        self._cache: dict[Optional[str], Optional[str]] = {}
        self._partners: dict[str, set[str]] = {}
        for a, b in interchange_pairs:
            ca, cb = normalize_department(a), normalize_department(b)
            if ca and cb:
                self._partners.setdefault(ca, set()).add(cb)
                self._partners.setdefault(cb, set()).add(ca)

    def __call__(self, raw: Optional[str]) -> Optional[str]:
        if raw not in self._cache:
            code = normalize_department(raw)
            if code is None and raw is not None and raw.strip():
                logger.warning(f"Ungültige Abteilungsbezeichnung (Prüfungsfach?): {raw!r}")
            self._cache[raw] = code
        return self._cache[raw]

    def is_interchange(self, a: Optional[str], b: Optional[str]) -> bool:
        """True wenn a und b (kanonisch) ein Austausch-Paar bilden."""
        if a is None or b is None:
            return False
        return b in self._partners.get(a, ())

    def matches_or_interchange(self, a: Optional[str], b: Optional[str]) -> bool:
        if a is None or b is None:
            return False
        return a == b or self.is_interchange(a, b)
