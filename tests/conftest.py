from __future__ import annotations

from collections.abc import Callable
from datetime import date

import pytest

from matka import create_app
from matka.db import create_app_engine, create_session_factory
from matka.models import Market
from matka.models.base import Base
from matka.services.bet_service import BetService

DAY = date(2026, 10, 19)


@pytest.fixture
def engine(tmp_path):
    engine = create_app_engine(f"sqlite:///{tmp_path / 'matka-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.rollback()
    s.close()


def _add_market(session, **kwargs) -> Market:
    values = {
        "name": "MOHINI",
        "open_time": "11:00",
        "close_time": "12:30",
        "auto_result": True,
        "is_active": True,
    }
    values.update(kwargs)
    market = Market(**values)
    session.add(market)
    session.flush()
    return market


@pytest.fixture
def make_market(session) -> Callable[..., Market]:
    return lambda **kwargs: _add_market(session, **kwargs)


@pytest.fixture
def make_bet(session):
    service = BetService()

    def _make(market: Market, bet_type: str, numbers: dict[str, float], bet_date: date = DAY):
        return service.place_bet(
            session,
            market_id=market.id,
            user_id="player-1",
            bet_type=bet_type,
            selected_numbers=numbers,
            bet_date=bet_date,
        )

    return _make


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE_URL": f"sqlite:///{tmp_path / 'matka-app.db'}",
            "AUTO_RESULT_ENABLED": False,
            "MARKET_TIMEZONE": "Asia/Kolkata",
        }
    )
    yield app
    app.extensions["recovery_scheduler"].stop()
    app.extensions["engine"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_session(app):
    s = app.extensions["session_factory"]()
    yield s
    s.close()
