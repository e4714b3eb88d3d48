"""Bet and bet selection ORM models.

A bet's ``selectedNumbers`` mapping is stored as one ``BetSelection`` row per
key, already tagged with its kind and payout rate at placement time.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from matka.models.base import Base


class Bet(Base):
    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[int] = mapped_column(Integer, ForeignKey("markets.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bet_type: Mapped[str] = mapped_column(String(8), nullable=False)  # open | close | both
    bet_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    result: Mapped[str] = mapped_column(String(10), nullable=False, default="unsettled")
    win_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    market_result: Mapped[str | None] = mapped_column(String(16), nullable=True)
    winning_mode: Mapped[str | None] = mapped_column(String(8), nullable=True)  # auto | manual

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    selections: Mapped[list["BetSelection"]] = relationship(
        back_populates="bet",
        cascade="all, delete-orphan",
        order_by="BetSelection.id",
        lazy="selectin",
    )

    @property
    def selected_numbers(self) -> dict[str, float]:
        return {s.selection_key: s.amount for s in self.selections}


class BetSelection(Base):
    """One staked key of a bet (a number or a sangam pattern)."""

    __tablename__ = "bet_selections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bet_id: Mapped[int] = mapped_column(Integer, ForeignKey("bets.id", ondelete="CASCADE"), nullable=False, index=True)
    selection_key: Mapped[str] = mapped_column(String(16), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    number_class: Mapped[str] = mapped_column(String(16), nullable=False)
    rate: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)

    bet: Mapped[Bet] = relationship(back_populates="selections")
