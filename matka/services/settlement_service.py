"""Win/loss computation for bets against declared open and close draws.

The payout helpers are pure; ``SettlementService`` applies them to every
unsettled bet of a market/day. Settlement recomputes a bet's outcome from the
current declared result, so running a pass twice never double-counts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from matka.models.bet import Bet
from matka.repositories.bet_repository import BetRepository
from matka.services.bet_selection import Selection, SelectionKind, selection_from_row
from matka.services.number_classifier import combine_ank, digit_sum, format_main

logger = logging.getLogger(__name__)

OPEN_PHASE_BET_TYPES = ("open",)
CLOSE_PHASE_BET_TYPES = ("close", "both")

Stake = tuple[Selection, float]


@dataclass(frozen=True)
class SettlementReport:
    phase: str
    market_id: int
    day: date
    bets_seen: int
    bets_won: int
    total_payout: float


def sangam_winnings(
    selection: Selection,
    amount: float,
    open_number: str,
    open_ank: int,
    close_number: str,
    close_ank: int,
) -> float:
    """Payout for a half or full sangam key, 0 when it does not match."""

    if selection.kind is SelectionKind.HALF_SANGAM:
        if selection.key in (f"{open_number}X{close_ank}", f"{open_ank}X{close_number}"):
            return amount * selection.rate
        return 0.0

    if selection.kind is SelectionKind.FULL_SANGAM:
        ank_pair = f"{digit_sum(open_number)}{digit_sum(close_number)}"
        if selection.key == f"{open_number}X{ank_pair}X{close_number}":
            return amount * selection.rate
        return 0.0

    return 0.0


def open_winnings(stakes: Iterable[Stake], open_number: str, open_ank: int) -> float:
    total = 0.0
    for selection, amount in stakes:
        # Sangams and jodis cannot resolve on the open draw alone.
        if selection.kind is SelectionKind.SINGLE and int(selection.key) == open_ank:
            total += amount * selection.rate
        elif selection.kind is SelectionKind.PANNA and selection.key == open_number:
            total += amount * selection.rate
    return total


def close_winnings(
    stakes: Iterable[Stake],
    open_number: str,
    open_ank: int,
    close_number: str,
    close_ank: int,
) -> float:
    jodi = combine_ank(open_ank, close_ank)
    total = 0.0
    for selection, amount in stakes:
        if selection.is_sangam:
            total += sangam_winnings(selection, amount, open_number, open_ank, close_number, close_ank)
        elif selection.kind is SelectionKind.SINGLE:
            if int(selection.key) == close_ank:
                total += amount * selection.rate
        elif selection.kind is SelectionKind.JODI:
            if int(selection.key) == jodi:
                total += amount * selection.rate
        elif selection.key == close_number:
            total += amount * selection.rate
    return total


def stakes_of(bet: Bet) -> list[Stake]:
    return [(selection_from_row(row), float(row.amount)) for row in bet.selections]


class SettlementService:
    """Settles bets as a side effect of a result declaration."""

    def __init__(self, repository: BetRepository | None = None) -> None:
        self._repo = repository or BetRepository()

    def _apply(
        self,
        session: Session,
        bet: Bet,
        total: float,
        market_result: str,
        winning_mode: str,
        settled_at: datetime,
    ) -> bool:
        won = total > 0
        written = self._repo.record_settlement(
            session,
            bet,
            result="won" if won else "loss",
            win_amount=total if won else 0.0,
            market_result=market_result,
            winning_mode=winning_mode,
            settled_at=settled_at,
        )
        if not written:
            logger.info("Bet %s was settled by another writer", bet.id)
        return won and written

    def settle_on_open(
        self,
        session: Session,
        market_id: int,
        day: date,
        open_number: str,
        open_ank: int,
        *,
        winning_mode: str = "auto",
    ) -> SettlementReport:
        bets = self._repo.list_unsettled(session, market_id, day, OPEN_PHASE_BET_TYPES)
        market_result = f"{open_number}-{open_ank}"
        settled_at = datetime.now(timezone.utc)

        won = 0
        payout = 0.0
        for bet in bets:
            total = open_winnings(stakes_of(bet), open_number, open_ank)
            if self._apply(session, bet, total, market_result, winning_mode, settled_at):
                won += 1
                payout += total

        logger.info(
            "Open settlement market=%s day=%s result=%s bets=%d won=%d payout=%.2f",
            market_id, day, market_result, len(bets), won, payout,
        )
        return SettlementReport("open", market_id, day, len(bets), won, payout)

    def settle_on_close(
        self,
        session: Session,
        market_id: int,
        day: date,
        open_number: str,
        open_ank: int,
        close_number: str,
        close_ank: int,
        *,
        winning_mode: str = "auto",
    ) -> SettlementReport:
        bets = self._repo.list_unsettled(session, market_id, day, CLOSE_PHASE_BET_TYPES)
        market_result = f"{open_number}-{format_main(combine_ank(open_ank, close_ank))}-{close_number}"
        settled_at = datetime.now(timezone.utc)

        won = 0
        payout = 0.0
        for bet in bets:
            total = close_winnings(stakes_of(bet), open_number, open_ank, close_number, close_ank)
            if self._apply(session, bet, total, market_result, winning_mode, settled_at):
                won += 1
                payout += total

        logger.info(
            "Close settlement market=%s day=%s result=%s bets=%d won=%d payout=%.2f",
            market_id, day, market_result, len(bets), won, payout,
        )
        return SettlementReport("close", market_id, day, len(bets), won, payout)
