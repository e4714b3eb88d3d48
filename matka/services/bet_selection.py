"""Parse bet keys into tagged selections once, when the bet is placed.

Settlement works on ``Selection`` values and dispatches on ``kind``; it never
sniffs the raw key to find out what was bet.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from matka.errors import BetSelectionError
from matka.services.number_classifier import WINNING_RATES, NumberClass, classify, is_plain_digits

SANGAM_SEPARATOR = "X"


class SelectionKind(str, Enum):
    SINGLE = "single"  # one digit, matched against an ank
    JODI = "jodi"  # two digits, matched against the combined ank
    PANNA = "panna"  # three digits, matched against a draw number
    HALF_SANGAM = "half_sangam"  # "356X1" or "4X128"
    FULL_SANGAM = "full_sangam"  # "356X41X128"


@dataclass(frozen=True)
class Selection:
    key: str
    kind: SelectionKind
    number_class: NumberClass
    rate: int

    @property
    def is_sangam(self) -> bool:
        return self.kind in (SelectionKind.HALF_SANGAM, SelectionKind.FULL_SANGAM)


_PLAIN_KINDS = {1: SelectionKind.SINGLE, 2: SelectionKind.JODI, 3: SelectionKind.PANNA}


def _parse_sangam(key: str) -> Selection:
    parts = key.split(SANGAM_SEPARATOR)
    if not all(is_plain_digits(p) for p in parts):
        raise BetSelectionError(f"Sangam key {key!r} must contain only digits around 'X'")

    widths = tuple(len(p) for p in parts)
    if len(parts) == 2:
        if widths not in ((3, 1), (1, 3)):
            raise BetSelectionError(f"Half sangam {key!r} must pair a 3-digit panna with a 1-digit ank")
        number_class = NumberClass.HALF_SANGAM
        kind = SelectionKind.HALF_SANGAM
    elif len(parts) == 3:
        if widths != (3, 2, 3):
            raise BetSelectionError(f"Full sangam {key!r} must look like PPPXAAXPPP")
        number_class = NumberClass.FULL_SANGAM
        kind = SelectionKind.FULL_SANGAM
    else:
        raise BetSelectionError(f"Sangam key {key!r} must have 2 or 3 segments")

    return Selection(key=key, kind=kind, number_class=number_class, rate=WINNING_RATES[number_class])


def parse_selection_key(raw: str) -> Selection:
    """Turn a bet key into a tagged ``Selection``.

    Raises:
        BetSelectionError: the key is empty, not numeric, longer than three
            digits, or a sangam pattern of the wrong shape.
    """

    key = str(raw).strip()
    if not key:
        raise BetSelectionError("Bet key must not be empty")

    if SANGAM_SEPARATOR in key:
        return _parse_sangam(key)

    if not is_plain_digits(key):
        raise BetSelectionError(f"Bet key {key!r} must be numeric")
    kind = _PLAIN_KINDS.get(len(key))
    if kind is None:
        raise BetSelectionError(f"Bet key {key!r} must have 1 to 3 digits")

    c = classify(key)
    return Selection(key=key, kind=kind, number_class=c.number_class, rate=c.rate)


def selection_from_row(row: object) -> Selection:
    """Rebuild a ``Selection`` from a persisted ``BetSelection`` row."""

    return Selection(
        key=str(getattr(row, "selection_key")),
        kind=SelectionKind(getattr(row, "kind")),
        number_class=NumberClass(getattr(row, "number_class")),
        rate=int(getattr(row, "rate")),
    )
