"""Repository layer for per-market, per-day results.

This is the single source of truth for declaration state. Writes are
single-row guarded UPDATEs so overlapping scheduler ticks cannot both win
the same transition.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from matka.models.market_day_result import MarketDayResult

_CONFLICT_COLUMNS = ["market_id", "result_date"]


class MarketDayResultRepository:
    """ResultStore for ``MarketDayResult`` rows."""

    def get(self, session: Session, market_id: int, day: date) -> MarketDayResult | None:
        stmt = (
            select(MarketDayResult)
            .where(MarketDayResult.market_id == market_id, MarketDayResult.result_date == day)
            .execution_options(populate_existing=True)
        )
        return session.scalars(stmt).first()

    def find_or_create(self, session: Session, market_id: int, day: date) -> MarketDayResult:
        """Return the (market, day) row, creating it if needed.

        Concurrent creators converge on one row: the insert is a no-op when
        the unique key already exists, and everyone re-selects afterwards.
        """

        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            insert = None

        if insert is not None:
            stmt = (
                insert(MarketDayResult)
                .values(market_id=market_id, result_date=day)
                .on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)
            )
            session.execute(stmt)
        elif self.get(session, market_id, day) is None:
            try:
                with session.begin_nested():
                    session.add(MarketDayResult(market_id=market_id, result_date=day))
            except IntegrityError:
                pass

        row = self.get(session, market_id, day)
        if row is None:
            raise RuntimeError(f"market_day_results row for market {market_id} on {day} vanished after upsert")
        return row

    def mark_open(
        self,
        session: Session,
        row: MarketDayResult,
        *,
        open_number: str,
        main: str,
        declared_at: datetime,
        declared_by: str | None,
    ) -> bool:
        """Write the open draw. Returns False if open was already declared."""

        stmt = (
            update(MarketDayResult)
            .where(MarketDayResult.id == row.id, MarketDayResult.open.is_(None))
            .values(open=open_number, main=main, open_declared_at=declared_at, declared_by=declared_by)
            .execution_options(synchronize_session=False)
        )
        won = session.execute(stmt).rowcount == 1
        session.refresh(row)
        return won

    def mark_close(
        self,
        session: Session,
        row: MarketDayResult,
        *,
        close_number: str,
        main: str,
        declared_at: datetime,
    ) -> bool:
        """Write the close draw. Returns False unless open is set and close is not."""

        stmt = (
            update(MarketDayResult)
            .where(
                MarketDayResult.id == row.id,
                MarketDayResult.open.is_not(None),
                MarketDayResult.close.is_(None),
            )
            .values(close=close_number, main=main, close_declared_at=declared_at)
            .execution_options(synchronize_session=False)
        )
        won = session.execute(stmt).rowcount == 1
        session.refresh(row)
        return won
