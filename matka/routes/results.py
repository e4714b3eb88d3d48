"""Result routes (controllers). No business logic here."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from flask import Blueprint, current_app, request

from matka.db import get_session
from matka.errors import ConflictError, NotFoundError, PreconditionError
from matka.repositories.market_repository import MarketRepository
from matka.schemas.result import DeclareResultSchema, MarketDayResultSchema, ResultQuerySchema
from matka.services.number_classifier import digit_sum
from matka.services.result_declaration_service import DeclarationStatus, ResultDeclarationService
from matka.utils.responses import ok

results_bp = Blueprint("results", __name__)

_declare_schema = DeclareResultSchema()
_query_schema = ResultQuerySchema()
_result_schema = MarketDayResultSchema()
_markets = MarketRepository()
_service = ResultDeclarationService()


def _get_market(session, market_id: int):  # type: ignore[no-untyped-def]
    market = _markets.get_by_id(session, market_id)
    if market is None:
        raise NotFoundError(message="Market not found")
    return market


@results_bp.post("/results/declare")
def declare_result():
    """Manually declare an open or close result for a market/day."""

    data = _declare_schema.load(request.get_json(silent=True) or {})
    session = get_session()
    market = _get_market(session, data["market_id"])

    result_type = data["result_type"]
    number = data["result_number"]
    day = data["target_date"]
    ank = digit_sum(number)

    if result_type == "open":
        outcome = _service.declare_open(
            session, market.id, day, number, ank, declared_by=data.get("declared_by"), winning_mode="manual"
        )
    else:
        outcome = _service.declare_close(session, market.id, day, number, ank, winning_mode="manual")

    if outcome.status is DeclarationStatus.REJECTED:
        raise PreconditionError(outcome.reason or "Result cannot be declared yet")

    row = outcome.result
    if outcome.status is DeclarationStatus.ALREADY_DECLARED:
        current = getattr(row, result_type, None)
        if current != number:
            raise ConflictError(
                f"{result_type.capitalize()} result already declared for {day.isoformat()}",
                details={"declared": current},
            )

    settlement = outcome.settlement
    return ok(
        {
            "marketId": market.id,
            "resultDate": day.isoformat(),
            "resultType": result_type,
            "resultNumber": number,
            "main": row.main if row else None,
            "declarationTime": outcome.declared_at.isoformat() if outcome.declared_at else None,
            "settledBets": settlement.bets_seen if settlement else 0,
            "winningBets": settlement.bets_won if settlement else 0,
        }
    )


@results_bp.get("/results/market/<int:market_id>")
def get_market_result(market_id: int):
    """Current result for a market/day; an all-null placeholder when nothing is declared."""

    args = _query_schema.load(request.args)
    session = get_session()
    market = _get_market(session, market_id)

    day = args.get("date") or datetime.now(ZoneInfo(current_app.config["MARKET_TIMEZONE"])).date()
    row = _service.current_result(session, market.id, day)
    if row is None:
        placeholder = {
            "market_id": market.id,
            "result_date": day,
            "open": None,
            "main": None,
            "close": None,
            "open_declared_at": None,
            "close_declared_at": None,
            "declared_by": None,
        }
        return ok(_result_schema.dump(placeholder))
    return ok(_result_schema.dump(row))
