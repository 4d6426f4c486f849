"""French display helpers for amounts and dates."""

from datetime import date
from decimal import Decimal


FRENCH_DAYS = [
    "lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche",
]
FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def format_amount(value: Decimal) -> str:
    """1650 -> '1 650€', 12.5 -> '12,50€'."""
    value = Decimal(value)
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole = int(value)
    cents = int((value - whole) * 100)
    grouped = f"{whole:,}".replace(",", " ")
    if cents:
        return f"{sign}{grouped},{cents:02d}€"
    return f"{sign}{grouped}€"


def format_date_fr(value: date) -> str:
    """'mardi 10 juin 2025'."""
    return (
        f"{FRENCH_DAYS[value.weekday()]} {value.day} "
        f"{FRENCH_MONTHS[value.month - 1]} {value.year}"
    )


def format_short_date(value: date) -> str:
    """'mar. 10/06'."""
    return f"{FRENCH_DAYS[value.weekday()][:3]}. {value.day:02d}/{value.month:02d}"


def month_label(year: int, month: int) -> str:
    """'Juin 2025'."""
    return f"{FRENCH_MONTHS[month - 1].capitalize()} {year}"
