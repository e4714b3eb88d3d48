"""Open/close result declaration for one market and day.

States per (market, day)::

    NO_RESULT -> OPEN_DECLARED -> CLOSED_DECLARED

No transition regresses. Re-declaring an already declared phase is a no-op,
which is what lets the recovery scheduler revisit a market/day on every tick.
A successful transition triggers the matching settlement pass in the same
transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy.orm import Session

from matka.models.market_day_result import MarketDayResult
from matka.repositories.market_day_result_repository import MarketDayResultRepository
from matka.services.number_classifier import combine_ank, format_main
from matka.services.settlement_service import SettlementReport, SettlementService

logger = logging.getLogger(__name__)

OPEN_BEFORE_CLOSE = "Open result must be declared before declaring close result"


class ResultState(str, Enum):
    NO_RESULT = "no_result"
    OPEN_DECLARED = "open_declared"
    CLOSED_DECLARED = "closed_declared"


class DeclarationStatus(str, Enum):
    DECLARED = "declared"
    ALREADY_DECLARED = "already_declared"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DeclarationOutcome:
    status: DeclarationStatus
    phase: str
    result: MarketDayResult | None = None
    declared_at: datetime | None = None
    settlement: SettlementReport | None = None
    reason: str | None = None

    @property
    def declared(self) -> bool:
        return self.status is DeclarationStatus.DECLARED

    @property
    def rejected(self) -> bool:
        return self.status is DeclarationStatus.REJECTED


def state_of(row: MarketDayResult | None) -> ResultState:
    if row is None or row.open is None:
        return ResultState.NO_RESULT
    if row.close is None:
        return ResultState.OPEN_DECLARED
    return ResultState.CLOSED_DECLARED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultDeclarationService:
    """Enforces legal result transitions and writes through the result store."""

    def __init__(
        self,
        results: MarketDayResultRepository | None = None,
        settlement: SettlementService | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._results = results or MarketDayResultRepository()
        self._settlement = settlement or SettlementService()
        self._clock = clock

    def current_result(self, session: Session, market_id: int, day: date) -> MarketDayResult | None:
        return self._results.get(session, market_id, day)

    def declare_open(
        self,
        session: Session,
        market_id: int,
        day: date,
        open_number: str,
        open_ank: int,
        *,
        declared_by: str | None = None,
        winning_mode: str = "auto",
    ) -> DeclarationOutcome:
        existing = self._results.get(session, market_id, day)
        if state_of(existing) is not ResultState.NO_RESULT:
            return DeclarationOutcome(
                DeclarationStatus.ALREADY_DECLARED, "open", existing, existing.open_declared_at if existing else None
            )

        row = self._results.find_or_create(session, market_id, day)
        declared_at = self._clock()
        if not self._results.mark_open(
            session,
            row,
            open_number=open_number,
            main=format_main(open_ank),
            declared_at=declared_at,
            declared_by=declared_by,
        ):
            logger.info("Open for market %s on %s was declared concurrently", market_id, day)
            return DeclarationOutcome(DeclarationStatus.ALREADY_DECLARED, "open", row, row.open_declared_at)

        logger.info("Declared open market=%s day=%s open=%s ank=%s", market_id, day, open_number, open_ank)
        report = self._settlement.settle_on_open(
            session, market_id, day, open_number, open_ank, winning_mode=winning_mode
        )
        return DeclarationOutcome(DeclarationStatus.DECLARED, "open", row, declared_at, report)

    def declare_close(
        self,
        session: Session,
        market_id: int,
        day: date,
        close_number: str,
        close_ank: int,
        *,
        winning_mode: str = "auto",
    ) -> DeclarationOutcome:
        row = self._results.get(session, market_id, day)
        state = state_of(row)
        if state is ResultState.NO_RESULT:
            return DeclarationOutcome(DeclarationStatus.REJECTED, "close", row, reason=OPEN_BEFORE_CLOSE)
        if state is ResultState.CLOSED_DECLARED:
            return DeclarationOutcome(DeclarationStatus.ALREADY_DECLARED, "close", row, row.close_declared_at)

        open_number = str(row.open)
        open_ank = int(row.main or 0)
        declared_at = self._clock()
        if not self._results.mark_close(
            session,
            row,
            close_number=close_number,
            main=format_main(combine_ank(open_ank, close_ank)),
            declared_at=declared_at,
        ):
            logger.info("Close for market %s on %s was declared concurrently", market_id, day)
            return DeclarationOutcome(DeclarationStatus.ALREADY_DECLARED, "close", row, row.close_declared_at)

        logger.info(
            "Declared close market=%s day=%s close=%s ank=%s main=%s", market_id, day, close_number, close_ank, row.main
        )
        report = self._settlement.settle_on_close(
            session, market_id, day, open_number, open_ank, close_number, close_ank, winning_mode=winning_mode
        )
        return DeclarationOutcome(DeclarationStatus.DECLARED, "close", row, declared_at, report)
