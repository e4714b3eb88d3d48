from matka.services.result_declaration_service import (
    OPEN_BEFORE_CLOSE,
    DeclarationStatus,
    ResultDeclarationService,
    ResultState,
    state_of,
)

from tests.conftest import DAY


def _snapshot(row):
    return (row.open, row.main, row.close, row.open_declared_at, row.close_declared_at, row.declared_by)


def test_close_before_open_is_rejected(session, make_market):
    market = make_market()
    service = ResultDeclarationService()

    outcome = service.declare_close(session, market.id, DAY, "128", 1)

    assert outcome.status is DeclarationStatus.REJECTED
    assert outcome.reason == OPEN_BEFORE_CLOSE
    assert service.current_result(session, market.id, DAY) is None


def test_declare_open_writes_padded_ank(session, make_market):
    market = make_market()
    service = ResultDeclarationService()

    outcome = service.declare_open(session, market.id, DAY, "356", 4, declared_by="admin-1")

    assert outcome.declared
    assert outcome.declared_at is not None
    row = service.current_result(session, market.id, DAY)
    assert (row.open, row.main, row.close) == ("356", "04", None)
    assert row.declared_by == "admin-1"
    assert state_of(row) is ResultState.OPEN_DECLARED


def test_declare_open_is_idempotent(session, make_market):
    market = make_market()
    service = ResultDeclarationService()

    service.declare_open(session, market.id, DAY, "356", 4)
    row = service.current_result(session, market.id, DAY)
    before = _snapshot(row)

    again = service.declare_open(session, market.id, DAY, "356", 4)

    assert again.status is DeclarationStatus.ALREADY_DECLARED
    assert _snapshot(service.current_result(session, market.id, DAY)) == before


def test_declare_close_combines_anks(session, make_market):
    market = make_market()
    service = ResultDeclarationService()
    service.declare_open(session, market.id, DAY, "123", 6)

    outcome = service.declare_close(session, market.id, DAY, "377", 7)

    assert outcome.declared
    row = service.current_result(session, market.id, DAY)
    assert (row.open, row.main, row.close) == ("123", "67", "377")
    assert row.close_declared_at is not None
    assert state_of(row) is ResultState.CLOSED_DECLARED


def test_combined_ank_is_truncated_to_two_digits(session, make_market):
    market = make_market()
    service = ResultDeclarationService()
    service.declare_open(session, market.id, DAY, "129", 12)

    service.declare_close(session, market.id, DAY, "120", 3)

    assert service.current_result(session, market.id, DAY).main == "23"


def test_declare_close_twice_is_a_no_op(session, make_market):
    market = make_market()
    service = ResultDeclarationService()
    service.declare_open(session, market.id, DAY, "356", 4)
    service.declare_close(session, market.id, DAY, "128", 1)

    again = service.declare_close(session, market.id, DAY, "999", 7)

    assert again.status is DeclarationStatus.ALREADY_DECLARED
    row = service.current_result(session, market.id, DAY)
    assert (row.close, row.main) == ("128", "41")


def test_declarations_trigger_settlement(session, make_market, make_bet):
    market = make_market()
    open_bet = make_bet(market, "open", {"356": 10, "4": 5})
    close_bet = make_bet(market, "close", {"41": 1})
    service = ResultDeclarationService()

    opened = service.declare_open(session, market.id, DAY, "356", 4)
    closed = service.declare_close(session, market.id, DAY, "128", 1)

    assert opened.settlement.bets_won == 1
    assert closed.settlement.bets_won == 1
    assert open_bet.win_amount == 10 * 150 + 5 * 9
    assert close_bet.win_amount == 90


def test_repeat_open_does_not_resettle(session, make_market, make_bet):
    market = make_market()
    bet = make_bet(market, "open", {"356": 10})
    service = ResultDeclarationService()
    service.declare_open(session, market.id, DAY, "356", 4)

    again = service.declare_open(session, market.id, DAY, "356", 4)

    assert again.settlement is None
    assert bet.win_amount == 1500
