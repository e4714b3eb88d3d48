"""Market ORM model.

Markets are maintained elsewhere; the settlement engine only reads them.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from matka.models.base import Base


class Market(Base):
    """A betting market with one open and one close draw per day."""

    __tablename__ = "markets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    open_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    close_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    auto_result: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
