from __future__ import annotations

import threading
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from matka.repositories.market_day_result_repository import MarketDayResultRepository
from matka.services.feed_client import FeedEntry, FeedSnapshot
from matka.services.recovery_scheduler import (
    MarketRef,
    PhaseStatus,
    RecoveryScheduler,
    market_window,
)

from tests.conftest import DAY

IST = ZoneInfo("Asia/Kolkata")
TOLERANCE = timedelta(minutes=10)


def at(hour: int, minute: int = 0, day=DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=IST)


class FakeFeed:
    def __init__(self, *entries: FeedEntry, ok: bool = True) -> None:
        self.entries = list(entries)
        self.ok = ok
        self.calls = 0

    def fetch_results(self) -> FeedSnapshot:
        self.calls += 1
        if not self.ok:
            return FeedSnapshot(ok=False, error="HTTP 503", status_code=503)
        return FeedSnapshot(ok=True, entries=list(self.entries))


def entry(result: str, name: str = "MOHINI", updated: str = "19-10-2026") -> FeedEntry:
    return FeedEntry(market_name=name, result=result, updated_date=updated)


@pytest.fixture
def build(session_factory):
    def _build(feed: FakeFeed, now: datetime, workers: int = 1) -> RecoveryScheduler:
        return RecoveryScheduler(
            session_factory,
            feed,
            tolerance_minutes=10,
            timezone_name="Asia/Kolkata",
            workers=workers,
            clock=lambda: now,
        )

    return _build


@pytest.fixture
def stored(session_factory):
    def _stored(market_id: int):
        with session_factory() as s:
            return MarketDayResultRepository().get(s, market_id, DAY)

    return _stored


class TestMarketWindow:
    MARKET = MarketRef(1, "MOHINI", "11:00", "12:30")

    @pytest.mark.parametrize(
        "now, open_status, close_status",
        [
            (at(10, 0), PhaseStatus.PENDING, PhaseStatus.PENDING),
            (at(10, 55), PhaseStatus.ON_TIME, PhaseStatus.PENDING),
            (at(11, 10), PhaseStatus.ON_TIME, PhaseStatus.PENDING),
            (at(11, 11), PhaseStatus.ELAPSED, PhaseStatus.PENDING),
            (at(12, 25), PhaseStatus.ELAPSED, PhaseStatus.ON_TIME),
            (at(13, 0), PhaseStatus.ELAPSED, PhaseStatus.ELAPSED),
        ],
    )
    def test_day_market(self, now, open_status, close_status):
        window = market_window(self.MARKET, now, TOLERANCE)
        assert window.day == DAY
        assert (window.open_status, window.close_status) == (open_status, close_status)

    def test_overnight_market_closes_next_day(self):
        market = MarketRef(2, "NIGHT", "22:00", "02:00")
        next_day = DAY + timedelta(days=1)

        late = market_window(market, at(23, 0), TOLERANCE)
        assert late.day == DAY
        assert (late.open_status, late.close_status) == (PhaseStatus.ELAPSED, PhaseStatus.PENDING)

        after_midnight = market_window(market, at(2, 30, day=next_day), TOLERANCE)
        assert after_midnight.day == DAY
        assert after_midnight.close_status is PhaseStatus.ELAPSED

        next_open = market_window(market, at(21, 55, day=next_day), TOLERANCE)
        assert next_open.day == next_day
        assert next_open.open_status is PhaseStatus.ON_TIME


def test_fully_missed_day_is_backfilled_in_order(build, stored, session, make_market, make_bet):
    market = make_market()
    open_bet = make_bet(market, "open", {"356": 10, "4": 5})
    close_bet = make_bet(market, "close", {"128": 10, "41": 2})
    both_bet = make_bet(market, "both", {"356X41X128": 1})
    session.commit()

    report = build(FakeFeed(entry("356-41-128")), at(13, 0)).run_once()

    assert report.feed_ok
    [outcome] = report.outcomes
    assert outcome.declared == ["open", "close"]
    row = stored(market.id)
    assert (row.open, row.main, row.close) == ("356", "41", "128")
    assert row.declared_by == "auto"

    for bet in (open_bet, close_bet, both_bet):
        session.refresh(bet)
    assert (open_bet.result, open_bet.win_amount) == ("won", 1545)
    assert (close_bet.result, close_bet.win_amount) == ("won", 1680)
    assert (both_bet.result, both_bet.win_amount) == ("won", 10000)


def test_repeated_ticks_are_no_ops(build, stored, session, make_market):
    market = make_market()
    session.commit()
    scheduler = build(FakeFeed(entry("356-41-128")), at(13, 0))

    scheduler.run_once()
    first = stored(market.id)
    report = scheduler.run_once()

    assert report.outcomes[0].declared == []
    assert report.outcomes[0].skipped == "already declared"
    second = stored(market.id)
    assert (second.open, second.main, second.close, second.open_declared_at) == (
        first.open,
        first.main,
        first.close,
        first.open_declared_at,
    )


def test_open_then_close_across_ticks(build, stored, session, make_market):
    market = make_market()
    session.commit()

    opened = build(FakeFeed(entry("356-4")), at(11, 30)).run_once()
    assert opened.outcomes[0].declared == ["open"]
    row = stored(market.id)
    assert (row.open, row.main, row.close) == ("356", "04", None)

    closed = build(FakeFeed(entry("356-41-128")), at(12, 45)).run_once()
    assert closed.outcomes[0].declared == ["close"]
    assert (stored(market.id).main, stored(market.id).close) == ("41", "128")


def test_open_ank_of_three_part_result_comes_from_open_panna(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(entry("356-41-128")), at(11, 30)).run_once()

    assert report.outcomes[0].declared == ["open"]
    assert stored(market.id).main == "04"


def test_on_time_open_declaration(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(entry("356-4")), at(11, 5)).run_once()

    assert report.outcomes[0].declared == ["open"]
    assert stored(market.id).open == "356"


def test_close_waits_for_three_part_result(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(entry("356-4")), at(13, 0)).run_once()

    assert report.outcomes[0].declared == ["open"]
    assert report.outcomes[0].skipped == "close not published"
    assert stored(market.id).close is None


def test_nothing_happens_before_open(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(entry("356-4")), at(10, 0)).run_once()

    assert report.outcomes[0].skipped == "open not due"
    assert stored(market.id) is None


def test_stale_feed_date_is_skipped(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(entry("356-41-128", updated="18-10-2026")), at(13, 0)).run_once()

    assert report.outcomes[0].skipped == "feed entry not for market day"
    assert stored(market.id) is None


def test_one_bad_market_does_not_block_others(build, stored, session, make_market):
    bad = make_market(name="MOHINI")
    good = make_market(name="KALYAN")
    missing = make_market(name="MILAN")
    session.commit()
    feed = FakeFeed(entry("35-4", name="MOHINI"), entry("356-41-128", name="kalyan"))

    report = build(feed, at(13, 0)).run_once()

    outcomes = {o.market_name: o for o in report.outcomes}
    assert outcomes["MOHINI"].skipped.startswith("invalid feed result")
    assert outcomes["MILAN"].skipped == "no feed entry"
    assert outcomes["KALYAN"].declared == ["open", "close"]
    assert stored(bad.id) is None
    assert stored(missing.id) is None
    assert stored(good.id).close == "128"
    assert feed.calls == 1


def test_feed_failure_aborts_tick(build, stored, session, make_market):
    market = make_market()
    session.commit()

    report = build(FakeFeed(ok=False), at(13, 0)).run_once()

    assert not report.feed_ok
    assert report.feed_error == "HTTP 503"
    assert report.outcomes == []
    assert stored(market.id) is None


def test_only_active_auto_result_markets_are_processed(build, session, make_market):
    make_market(name="MANUAL", auto_result=False)
    make_market(name="CLOSED", is_active=False)
    make_market(name="MOHINI")
    session.commit()

    report = build(FakeFeed(entry("356-4")), at(11, 30)).run_once()

    assert [o.market_name for o in report.outcomes] == ["MOHINI"]


def test_manual_open_then_scheduler_backfills_close(build, stored, session, make_market):
    from matka.services.result_declaration_service import ResultDeclarationService

    market = make_market()
    ResultDeclarationService().declare_open(session, market.id, DAY, "356", 4, declared_by="admin")
    session.commit()

    report = build(FakeFeed(entry("356-41-128")), at(13, 0)).run_once()

    assert report.outcomes[0].declared == ["close"]
    row = stored(market.id)
    assert (row.declared_by, row.main) == ("admin", "41")


def test_status_tracks_ticks(build, session, make_market):
    make_market()
    session.commit()
    scheduler = build(FakeFeed(entry("356-4")), at(11, 30))

    assert scheduler.status()["ticks"] == 0
    scheduler.run_once()
    status = scheduler.status()

    assert status["ticks"] == 1
    assert status["running"] is False
    assert status["last_feed_ok"] is True


def test_parallel_tick_declares_every_market(build, stored, session, make_market):
    names = ["MOHINI", "KALYAN", "MILAN", "SRIDEVI"]
    markets = [make_market(name=name) for name in names]
    session.commit()
    feed = FakeFeed(*(entry("356-41-128", name=name) for name in names))

    report = build(feed, at(13, 0), workers=3).run_once()

    assert [o.market_name for o in report.outcomes] == names
    assert all(o.declared == ["open", "close"] and o.error is None for o in report.outcomes)
    for market in markets:
        assert stored(market.id).close == "128"
    assert feed.calls == 1


class GatedFeed:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_results(self) -> FeedSnapshot:
        self.entered.set()
        self.release.wait(5)
        return FeedSnapshot(ok=True)


class TestLifecycle:
    def test_start_stop(self, session_factory):
        scheduler = RecoveryScheduler(session_factory, FakeFeed(), interval_seconds=60)

        assert scheduler.start() is True
        assert scheduler.start() is False
        assert scheduler.is_running
        assert scheduler.stop() is True
        assert scheduler.stop() is False
        assert scheduler.status()["running"] is False

    def test_restart_during_slow_tick_leaves_one_loop(self, session_factory):
        feed = GatedFeed()
        scheduler = RecoveryScheduler(session_factory, feed, interval_seconds=60)
        scheduler.start()
        assert feed.entered.wait(2)
        old_thread = scheduler._thread

        assert scheduler.stop(timeout=0.05) is True
        assert old_thread.is_alive()
        assert scheduler.start() is True
        feed.release.set()
        old_thread.join(2)

        try:
            assert not old_thread.is_alive()
            assert scheduler.is_running
            loops = [t for t in threading.enumerate() if t.name == "recovery-scheduler"]
            assert loops == [scheduler._thread]
        finally:
            scheduler.stop()
