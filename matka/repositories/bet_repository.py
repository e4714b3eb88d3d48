"""Repository layer for bets."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from matka.models.bet import Bet

UNSETTLED = "unsettled"


class BetRepository:
    """Persistence for bets and their settlement fields."""

    def get_by_id(self, session: Session, bet_id: int) -> Bet | None:
        return session.get(Bet, bet_id)

    def create(self, session: Session, bet: Bet) -> Bet:
        session.add(bet)
        session.flush()  # assign PKs
        return bet

    def list_unsettled(
        self,
        session: Session,
        market_id: int,
        day: date,
        bet_types: Iterable[str],
    ) -> Sequence[Bet]:
        stmt = (
            select(Bet)
            .where(
                Bet.market_id == market_id,
                Bet.bet_date == day,
                Bet.bet_type.in_(list(bet_types)),
                Bet.status.is_(True),
                Bet.result == UNSETTLED,
            )
            .order_by(Bet.id.asc())
        )
        return list(session.scalars(stmt).all())

    def record_settlement(
        self,
        session: Session,
        bet: Bet,
        *,
        result: str,
        win_amount: float,
        market_result: str,
        winning_mode: str,
        settled_at: datetime,
    ) -> bool:
        """Overwrite the bet's outcome. Returns False if another writer settled it first."""

        stmt = (
            update(Bet)
            .where(Bet.id == bet.id, Bet.result == UNSETTLED)
            .values(
                result=result,
                win_amount=win_amount,
                market_result=market_result,
                winning_mode=winning_mode,
                settled_at=settled_at,
            )
            .execution_options(synchronize_session=False)
        )
        written = session.execute(stmt).rowcount == 1
        session.refresh(bet)
        return written
