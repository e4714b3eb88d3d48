"""Declared results for one market on one calendar day.

Columns:
- open / close: 3-digit draw numbers (strings, "000" is legal)
- main: zero-padded ank; open ank until close is declared, then the jodi
- open_declared_at / close_declared_at: declaration timestamps (UTC)
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from matka.models.base import Base


class MarketDayResult(Base):
    """One row per (market, day)."""

    __tablename__ = "market_day_results"
    __table_args__ = (UniqueConstraint("market_id", "result_date", name="uq_market_day_results_market_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[int] = mapped_column(Integer, ForeignKey("markets.id"), nullable=False, index=True)
    result_date: Mapped[date] = mapped_column(Date, nullable=False)

    open: Mapped[str | None] = mapped_column(String(3), nullable=True)
    main: Mapped[str | None] = mapped_column(String(2), nullable=True)
    close: Mapped[str | None] = mapped_column(String(3), nullable=True)

    open_declared_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    close_declared_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declared_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
