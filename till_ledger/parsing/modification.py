"""
Keyword Modification Grammar

Turns short operator messages such as
    "CB 1000 ESP 500 TR 100 dépense 50 total déclaré 1200"
    "hier cb 800 esp 0"
    "tr déclaré 80"
into a PartialRecord, without calling any external service.

Each amount belongs to the label written right before it. A relative
phrase ("hier") or a typed date ("12/06") becomes date_text. A bare
"total" is ignored, because the actual total is always computed.

Words the grammar could not use are reported next to the result so the
caller can hand the message to the extraction service instead of
guessing: in "carte le 30 février" nothing is read as an amount.
"""

import re
import unicodedata
from decimal import Decimal
from typing import Optional, Protocol

from till_ledger.dates import find_date_phrase
from till_ledger.models.ledger import PartialRecord, to_money


CARD = "card"
CASH = "cash"
MEAL_VOUCHER = "meal_voucher"
EXPENSE = "expense"

ALIASES = {
    "cb": CARD,
    "carte": CARD,
    "cartes": CARD,
    "bleue": CARD,
    "bancaire": CARD,
    "esp": CASH,
    "espece": CASH,
    "especes": CASH,
    "cash": CASH,
    "liquide": CASH,
    "tr": MEAL_VOUCHER,
    "ticket": MEAL_VOUCHER,
    "tickets": MEAL_VOUCHER,
    "resto": MEAL_VOUCHER,
    "restaurant": MEAL_VOUCHER,
    "dep": EXPENSE,
    "depense": EXPENSE,
    "depenses": EXPENSE,
    "frais": EXPENSE,
}

ACTUAL_TARGETS = {
    CARD: "card_actual",
    CASH: "cash_actual",
    MEAL_VOUCHER: "meal_voucher_actual",
    EXPENSE: "expense_actual",
}

DECLARED_TARGETS = {
    MEAL_VOUCHER: "meal_voucher_declared",
    EXPENSE: "expense_declared",
}

# Connectives that carry no figure of their own
FILLER_WORDS = {
    "et", "euro", "euros", "eur", "e",
    "le", "la", "les", "de", "du", "des", "en", "a",
}

# An amount: optional minus, digits (with optional space thousands), optional cents.
# Digits glued to '/', '-' or to another number by '.'/',' belong to a date.
_AMOUNT = re.compile(
    r"(?<![\w/.,\-])"
    r"(-?)\s?"
    r"(\d{1,3}(?: \d{3})+|\d+)"
    r"(?:[.,](\d{1,2}))?"
    r"(?![\d/\-]|[.,]\d)"
)
_WORD = re.compile(r"[a-z0-9']+")


class ModificationParser(Protocol):
    """Anything that turns operator text into a candidate edit."""

    def scan(self, text: str) -> tuple[PartialRecord, list[str]]:
        """The candidate, and the words that went unused."""
        ...


def _fold(text: str) -> str:
    """Lowercase and strip accents: 'Dépense Déclarée' -> 'depense declaree'."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _is_label_word(word: str) -> bool:
    return word in ALIASES or word == "total" or word.startswith("decl")


def _split_label(words: list[str]) -> tuple[list[str], list[str]]:
    """(words before the label, label) where the label ends the list."""
    start = len(words)
    while start > 0 and _is_label_word(words[start - 1]):
        start -= 1
    return words[:start], words[start:]


def _target_field(label: list[str]) -> Optional[str]:
    declared = any(word.startswith("decl") for word in label)
    kinds = [ALIASES[word] for word in label if word in ALIASES]

    if not kinds:
        if declared and "total" in label:
            return "total_declared"
        return None

    # The label closest to the amount wins
    kind = kinds[-1]
    if declared:
        return DECLARED_TARGETS.get(kind)
    return ACTUAL_TARGETS[kind]


def _unused(words: list[str]) -> list[str]:
    return [word for word in words if word not in FILLER_WORDS]


class KeywordModificationParser:
    """Label/amount grammar for CB, ESP, TR, dépense and declared totals."""

    def scan(self, text: str) -> tuple[PartialRecord, list[str]]:
        folded = _fold(text)
        values: dict[str, object] = {}
        unused: list[str] = []

        date_match = find_date_phrase(folded)
        if date_match is not None:
            values["date_text"] = date_match.group(1)
            start, end = date_match.span(1)
            folded = f"{folded[:start]} {folded[end:]}"

        previous_end = 0
        for match in _AMOUNT.finditer(folded):
            before, label = _split_label(_WORD.findall(folded[previous_end:match.start()]))
            previous_end = match.end()
            unused.extend(_unused(before))

            field = _target_field(label)
            if field is None:
                unused.extend(label)
                unused.append(match.group(0).strip())
                continue

            sign, whole, cents = match.groups()
            raw = whole.replace(" ", "")
            if cents:
                raw = f"{raw}.{cents}"
            amount = to_money(raw)
            values[field] = -amount if sign else amount

        unused.extend(_unused(_WORD.findall(folded[previous_end:])))
        return PartialRecord(**values), unused

    def parse(self, text: str) -> PartialRecord:
        candidate, _ = self.scan(text)
        return candidate


def parse_modification(text: str) -> PartialRecord:
    """Parse with the default keyword grammar."""
    return KeywordModificationParser().parse(text)
