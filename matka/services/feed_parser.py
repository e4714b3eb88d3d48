"""Parse raw result strings published by the external feed.

Two shapes are legal:

- ``"NNN-M"``: open only, e.g. ``"336-2"``
- ``"NNN-MM-NNN"``: open and close, e.g. ``"880-56-152"``

Anything else raises ``FeedFormatError`` and the market is skipped for the tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from matka.errors import FeedFormatError
from matka.services.number_classifier import is_plain_digits

FEED_DATE_FORMAT = "%d-%m-%Y"


@dataclass(frozen=True)
class FeedResult:
    open_number: str
    open_main: int
    close_number: str | None = None

    @property
    def has_close(self) -> bool:
        return self.close_number is not None


def _as_int(part: str, raw: str) -> int:
    part = part.strip()
    if not is_plain_digits(part):
        raise FeedFormatError(f"Non-numeric part {part!r} in feed result {raw!r}")
    return int(part)


def _panna(part: str, raw: str) -> str:
    value = _as_int(part, raw)
    if not 100 <= value <= 999:
        raise FeedFormatError(f"Panna {part!r} out of range 100-999 in feed result {raw!r}")
    return str(value)


def _main(part: str, raw: str) -> int:
    value = _as_int(part, raw)
    if not 0 <= value <= 99:
        raise FeedFormatError(f"Main {part!r} out of range 0-99 in feed result {raw!r}")
    return value


def parse_feed_result(raw: str) -> FeedResult:
    """Parse one market's result string."""

    parts = str(raw or "").strip().split("-")
    if len(parts) == 2:
        return FeedResult(open_number=_panna(parts[0], raw), open_main=_main(parts[1], raw))
    if len(parts) == 3:
        return FeedResult(
            open_number=_panna(parts[0], raw),
            open_main=_main(parts[1], raw),
            close_number=_panna(parts[2], raw),
        )
    raise FeedFormatError(f"Invalid feed result {raw!r}: expected 2 or 3 parts, got {len(parts)}")


def parse_feed_date(raw: str) -> date:
    """Parse the feed's ``updated_date`` (``DD-MM-YYYY``)."""

    try:
        return datetime.strptime(str(raw).strip(), FEED_DATE_FORMAT).date()
    except ValueError as e:
        raise FeedFormatError(f"Invalid feed date {raw!r}") from e


def is_for_day(updated_date: str, day: date) -> bool:
    """True when the feed entry was published for ``day``.

    An unparseable date counts as "not for this day".
    """

    try:
        return parse_feed_date(updated_date) == day
    except FeedFormatError:
        return False
