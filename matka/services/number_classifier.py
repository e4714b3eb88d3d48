"""Number classes, payout rates and ank arithmetic.

Everything here is pure and table-driven; the tables never change at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NumberClass(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    SINGLE_PANNA = "singlePanna"
    DOUBLE_PANNA = "doublePanna"
    TRIPLE_PANNA = "triplePanna"
    HALF_SANGAM = "halfSangam"
    FULL_SANGAM = "fullSangam"


WINNING_RATES: dict[NumberClass, int] = {
    NumberClass.SINGLE: 9,
    NumberClass.DOUBLE: 90,
    NumberClass.SINGLE_PANNA: 150,
    NumberClass.DOUBLE_PANNA: 300,
    NumberClass.TRIPLE_PANNA: 1000,
    NumberClass.HALF_SANGAM: 1000,
    NumberClass.FULL_SANGAM: 10000,
}

SINGLE_PANNA_NUMBERS: frozenset[str] = frozenset(
    """
    128 129 120 130 140 137 138 139 149 159 146 147 148 158 168
    236 156 157 167 230 245 237 238 239 249 290 246 247 248 258
    380 345 256 257 267 470 390 346 347 348 489 480 490 356 357
    560 570 580 590 456 579 589 670 680 690 678 679 689 789 780
    123 124 125 126 127 150 160 134 135 136 169 179 170 180 145
    178 250 189 234 190 240 269 260 270 235 259 278 279 289 280
    268 340 350 360 370 349 359 369 379 389 358 368 378 450 460
    367 458 459 469 479 457 467 468 478 569 790 890 567 568 578
    """.split()
)

DOUBLE_PANNA_NUMBERS: frozenset[str] = frozenset(
    """
    100 110 166 112 113 119 200 229 220 122 155 228 300 266 177
    227 255 337 338 339 335 336 355 400 366 344 499 445 446 447
    399 660 599 455 500 588 688 779 699 799 669 778 788 770 889
    114 115 116 117 118 277 133 224 144 226 330 188 233 199 244
    448 223 288 225 299 466 377 440 388 334 556 449 477 559 488
    600 557 558 577 550 880 566 800 667 668 899 700 990 900 677
    """.split()
)

TRIPLE_PANNA_NUMBERS: frozenset[str] = frozenset(
    ("000", "111", "222", "333", "444", "555", "666", "777", "888", "999")
)


@dataclass(frozen=True)
class Classification:
    number_class: NumberClass
    rate: int


def _classified(number_class: NumberClass) -> Classification:
    return Classification(number_class=number_class, rate=WINNING_RATES[number_class])


def classify(number: str) -> Classification:
    """Classify a plain bet number (1-3 digits) and return its payout rate.

    Priority: length 1 is single, length 2 is double (jodi); a 3-digit number
    is looked up in the triple, single and double panna tables in that order.
    A 3-digit number found in none of them pays at the double rate.
    """

    if len(number) == 1:
        return _classified(NumberClass.SINGLE)
    if len(number) == 2:
        return _classified(NumberClass.DOUBLE)
    if number in TRIPLE_PANNA_NUMBERS:
        return _classified(NumberClass.TRIPLE_PANNA)
    if number in SINGLE_PANNA_NUMBERS:
        return _classified(NumberClass.SINGLE_PANNA)
    if number in DOUBLE_PANNA_NUMBERS:
        return _classified(NumberClass.DOUBLE_PANNA)
    return _classified(NumberClass.DOUBLE)


def is_plain_digits(value: str) -> bool:
    """True for a non-empty string of ASCII 0-9 only; Unicode digits are rejected."""

    return value.isascii() and value.isdigit()


def digit_sum(number: str) -> int:
    """Sum of the digits, wrapped mod 10 (the ank of a panna)."""

    return sum(int(d) for d in number) % 10


def combine_ank(open_ank: int, close_ank: int) -> int:
    """Jodi formed by writing the close ank after the open ank.

    The concatenation is truncated to two digits, so an open ank of 12 with a
    close ank of 3 yields 23.
    """

    combined = int(f"{open_ank}{close_ank}")
    return combined % 100 if combined > 99 else combined


def format_main(value: int) -> str:
    return f"{value:02d}"
