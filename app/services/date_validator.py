# app/services/date_validator.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, List, Union

AUTH_FIELD = "auth_date"
ISSUE_FIELD = "issue_date"

YEAR_MIN = 1900
YEAR_MAX = 3000

MSG_AUTH_FORMAT = "Le format de la 'Date autorisation transport' est invalide. Utilisez JJ/MM/AAAA."
MSG_ISSUE_FORMAT = "Le format de la 'Date d'établissement' est invalide. Utilisez JJ/MM/AAAA."
MSG_ISSUE_BEFORE_AUTH = (
    "La 'Date d'établissement' ne peut pas être antérieure à la 'Date autorisation transport'."
)

_DIGITS = re.compile(r"[0-9]+")


class DateParseError(ValueError):
    """Erreur de lecture d'une date saisie (le texte fautif est conservé)."""

    def __init__(self, text: str, detail: str):
        super().__init__(f"{detail}: {text!r}")
        self.text = text
        self.detail = detail


class MalformedInput(DateParseError):
    pass


class OutOfRange(DateParseError):
    pass


class InvalidCalendarDate(DateParseError):
    pass


@dataclass(frozen=True, order=True)
class DateValue:
    # ordre des champs = ordre chronologique (comparaison de tuples)
    year: int
    month: int
    day: int

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return f"{self.day:02d}/{self.month:02d}/{self.year:04d}"


@dataclass(frozen=True)
class Valid:
    ok = True


@dataclass(frozen=True)
class Invalid:
    reason: str
    fields: FrozenSet[str]

    ok = False


ValidationResult = Union[Valid, Invalid]


def _split_components(text: str) -> List[str]:
    # "/" et espaces sont équivalents ; une suite de séparateurs = une seule frontière
    return [p for p in text.strip().replace("/", " ").split(" ") if p]


def _to_int(part: str, text: str, name: str) -> int:
    if not _DIGITS.fullmatch(part):
        raise OutOfRange(text, f"{name} non numérique")
    return int(part)


def parse_date(text: str) -> DateValue:
    """Lit une date JJ/MM/AAAA (ou JJ MM AAAA).

    Lève MalformedInput (nombre de composantes ≠ 3), OutOfRange (composante
    non entière ou hors bornes) ou InvalidCalendarDate (ex. 31/02).
    """
    parts = _split_components(text or "")
    if len(parts) != 3:
        raise MalformedInput(text, "3 composantes attendues (jour, mois, année)")

    day = _to_int(parts[0], text, "jour")
    month = _to_int(parts[1], text, "mois")
    year = _to_int(parts[2], text, "année")

    if not 1 <= day <= 31:
        raise OutOfRange(text, "jour hors bornes [1, 31]")
    if not 1 <= month <= 12:
        raise OutOfRange(text, "mois hors bornes [1, 12]")
    if not YEAR_MIN <= year <= YEAR_MAX:
        raise OutOfRange(text, f"année hors bornes [{YEAR_MIN}, {YEAR_MAX}]")

    # date() refuse les dates inexistantes au lieu de reporter sur le mois suivant
    try:
        date(year, month, day)
    except ValueError:
        raise InvalidCalendarDate(text, "date inexistante au calendrier") from None

    return DateValue(year=year, month=month, day=day)


def validate_dates(auth_text: str, issue_text: str) -> ValidationResult:
    """Contrôle croisé des deux dates du formulaire.

    Une seule erreur est renvoyée, la première dans l'ordre :
    format de la date d'autorisation, format de la date d'établissement,
    puis antériorité de la date d'établissement.
    """
    try:
        auth = parse_date(auth_text)
    except DateParseError:
        return Invalid(MSG_AUTH_FORMAT, frozenset({AUTH_FIELD}))

    try:
        issue = parse_date(issue_text)
    except DateParseError:
        return Invalid(MSG_ISSUE_FORMAT, frozenset({ISSUE_FIELD}))

    if issue < auth:
        return Invalid(MSG_ISSUE_BEFORE_AUTH, frozenset({AUTH_FIELD, ISSUE_FIELD}))

    return Valid()
