"""Repository layer for market reads."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from matka.models.market import Market


class MarketRepository:
    """Read operations for markets (market CRUD lives elsewhere)."""

    def get_by_id(self, session: Session, market_id: int) -> Market | None:
        return session.get(Market, market_id)

    def list_auto_result_markets(self, session: Session) -> Sequence[Market]:
        stmt = (
            select(Market)
            .where(Market.auto_result.is_(True), Market.is_active.is_(True))
            .order_by(Market.id.asc())
        )
        return list(session.scalars(stmt).all())
