"""Bet routes (controllers). No business logic here."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from flask import Blueprint, current_app, request

from matka.db import get_session
from matka.schemas.bet import BetCreateSchema, BetSchema
from matka.services.bet_service import BetService
from matka.utils.responses import ok

bets_bp = Blueprint("bets", __name__)

_create_schema = BetCreateSchema()
_bet_schema = BetSchema()
_service = BetService()


@bets_bp.post("/bets")
def place_bet():
    """Place a bet against a market day (today in market time unless betDate is given)."""

    payload = request.get_json(silent=True) or {}
    data = _create_schema.load(payload)
    bet_date = data.get("bet_date") or datetime.now(ZoneInfo(current_app.config["MARKET_TIMEZONE"])).date()

    session = get_session()
    bet = _service.place_bet(
        session,
        market_id=int(data["market_id"]),
        user_id=str(data["user_id"]),
        bet_type=str(data["bet_type"]),
        selected_numbers=dict(data["selected_numbers"]),
        bet_date=bet_date,
    )

    # Commit occurs in teardown if no exception.
    return ok(_bet_schema.dump(bet), status_code=201)


@bets_bp.get("/bets/<int:bet_id>")
def get_bet(bet_id: int):
    bet = _service.get_bet(get_session(), bet_id)
    return ok(_bet_schema.dump(bet))
