"""Service layer for bet placement and lookup."""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from matka.errors import BetSelectionError, NotFoundError, ValidationError
from matka.models.bet import Bet, BetSelection
from matka.repositories.bet_repository import UNSETTLED, BetRepository
from matka.repositories.market_repository import MarketRepository
from matka.services.bet_selection import parse_selection_key

BET_TYPES = ("open", "close", "both")


class BetService:
    """Bet use-cases. Balance debits happen upstream of this service."""

    def __init__(
        self,
        repository: BetRepository | None = None,
        markets: MarketRepository | None = None,
        timezone_name: str = "Asia/Kolkata",
    ) -> None:
        self._repo = repository or BetRepository()
        self._markets = markets or MarketRepository()
        self._tz = ZoneInfo(timezone_name)

    def get_bet(self, session: Session, bet_id: int) -> Bet:
        bet = self._repo.get_by_id(session, bet_id)
        if bet is None:
            raise NotFoundError(message=f"Bet {bet_id} not found")
        return bet

    def place_bet(
        self,
        session: Session,
        *,
        market_id: int,
        user_id: str,
        bet_type: str,
        selected_numbers: dict[str, float],
        bet_date: date | None = None,
    ) -> Bet:
        market = self._markets.get_by_id(session, market_id)
        if market is None:
            raise NotFoundError(message=f"Market {market_id} not found")
        if not market.is_active:
            raise ValidationError("Market is not active")
        if bet_type not in BET_TYPES:
            raise ValidationError('Bet type must be one of "open", "close" or "both"')
        if not selected_numbers:
            raise ValidationError("At least one number must be selected")

        rows: list[BetSelection] = []
        errors: dict[str, list[str]] = {}
        for key, amount in selected_numbers.items():
            try:
                selection = parse_selection_key(key)
            except BetSelectionError as e:
                errors.setdefault(str(key), []).append(str(e))
                continue
            if amount is None or float(amount) <= 0:
                errors.setdefault(str(key), []).append("Amount must be positive")
                continue
            rows.append(
                BetSelection(
                    selection_key=selection.key,
                    kind=selection.kind.value,
                    number_class=selection.number_class.value,
                    rate=selection.rate,
                    amount=float(amount),
                )
            )
        if errors:
            raise ValidationError("Invalid bet selection", details=errors)

        bet = Bet(
            market_id=market.id,
            user_id=str(user_id),
            bet_type=bet_type,
            bet_date=bet_date or datetime.now(self._tz).date(),
            amount=sum(r.amount for r in rows),
            status=True,
            result=UNSETTLED,
            win_amount=0.0,
            selections=rows,
        )
        return self._repo.create(session, bet)
