"""ORM models."""

from matka.models.bet import Bet, BetSelection
from matka.models.market import Market
from matka.models.market_day_result import MarketDayResult

__all__ = ["Bet", "BetSelection", "Market", "MarketDayResult"]
