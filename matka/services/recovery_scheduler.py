"""Periodic auto-result driver.

Every tick fetches the external feed once, then walks all active
auto-result markets and declares whatever is due: the open draw, the close
draw, or both in order when a market's whole window was missed. On-time and
recovery declarations share one code path; they differ only in how far past
the scheduled time the tick runs.

The scheduler keeps no declaration state of its own. Each market is
processed in its own transaction and the result store decides what is
already declared, so overlapping ticks (or several worker processes) are
safe.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, sessionmaker

from matka.db import session_scope
from matka.errors import FeedFormatError
from matka.repositories.market_repository import MarketRepository
from matka.services.feed_client import ExternalFeedClient, FeedSnapshot
from matka.services.feed_parser import FeedResult, is_for_day, parse_feed_result
from matka.services.number_classifier import combine_ank, digit_sum
from matka.services.result_declaration_service import (
    DeclarationOutcome,
    ResultDeclarationService,
    ResultState,
    state_of,
)

logger = logging.getLogger(__name__)


class PhaseStatus(str, Enum):
    PENDING = "pending"
    ON_TIME = "on_time"
    ELAPSED = "elapsed"

    @property
    def due(self) -> bool:
        return self is not PhaseStatus.PENDING


@dataclass(frozen=True)
class MarketRef:
    """Immutable snapshot of a market handed to a worker."""

    id: int
    name: str
    open_time: str
    close_time: str


@dataclass(frozen=True)
class MarketWindow:
    day: date
    open_status: PhaseStatus
    close_status: PhaseStatus


@dataclass
class MarketOutcome:
    market_id: int
    market_name: str
    day: date | None = None
    declared: list[str] = field(default_factory=list)
    skipped: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "market_id": self.market_id,
            "market_name": self.market_name,
            "day": self.day.isoformat() if self.day else None,
            "declared": list(self.declared),
            "skipped": self.skipped,
            "error": self.error,
        }


@dataclass
class TickReport:
    started_at: datetime
    feed_ok: bool
    feed_error: str | None = None
    outcomes: list[MarketOutcome] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "feed_ok": self.feed_ok,
            "feed_error": self.feed_error,
            "markets": [o.as_dict() for o in self.outcomes],
        }


def parse_hhmm(value: str) -> time:
    hours, minutes = str(value).strip().split(":")[:2]
    return time(int(hours), int(minutes))


def phase_status(now: datetime, scheduled: datetime, tolerance: timedelta) -> PhaseStatus:
    delta = now - scheduled
    if delta > tolerance:
        return PhaseStatus.ELAPSED
    if abs(delta) <= tolerance:
        return PhaseStatus.ON_TIME
    return PhaseStatus.PENDING


def market_window(market: MarketRef, now_local: datetime, tolerance: timedelta) -> MarketWindow:
    """Work out the market day and whether its open/close draws are due.

    Overnight markets (close earlier than open on the clock) close on the
    next calendar day; until the next open window starts they still belong
    to the previous day.
    """

    tz = now_local.tzinfo
    open_t = parse_hhmm(market.open_time)
    close_t = parse_hhmm(market.close_time)
    overnight = close_t < open_t

    day = now_local.date()
    if overnight and now_local < datetime.combine(day, open_t, tzinfo=tz) - tolerance:
        day -= timedelta(days=1)

    open_at = datetime.combine(day, open_t, tzinfo=tz)
    close_at = datetime.combine(day + timedelta(days=1) if overnight else day, close_t, tzinfo=tz)
    return MarketWindow(
        day=day,
        open_status=phase_status(now_local, open_at, tolerance),
        close_status=phase_status(now_local, close_at, tolerance),
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecoveryScheduler:
    """Declares due and missed market results from the external feed."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        feed_client: ExternalFeedClient,
        *,
        declarations: ResultDeclarationService | None = None,
        markets: MarketRepository | None = None,
        interval_seconds: float = 60.0,
        tolerance_minutes: int = 10,
        timezone_name: str = "Asia/Kolkata",
        workers: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed_client
        self._declarations = declarations or ResultDeclarationService()
        self._markets = markets or MarketRepository()
        self.interval_seconds = float(interval_seconds)
        self.tolerance = timedelta(minutes=tolerance_minutes)
        self.tz = ZoneInfo(timezone_name)
        self.workers = max(1, int(workers))
        self._clock = clock

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0
        self._last_tick_at: datetime | None = None
        self._last_report: TickReport | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], session_factory: sessionmaker[Session]) -> "RecoveryScheduler":
        return cls(
            session_factory,
            ExternalFeedClient.from_config(config),
            interval_seconds=float(config["AUTO_RESULT_INTERVAL_SECONDS"]),
            tolerance_minutes=int(config["AUTO_RESULT_TOLERANCE_MINUTES"]),
            timezone_name=str(config["MARKET_TIMEZONE"]),
            workers=int(config["AUTO_RESULT_WORKERS"]),
        )

    # Tick

    def run_once(self) -> TickReport:
        """Run one tick: one feed fetch, then every auto-result market."""

        started_at = self._clock()
        try:
            feed = self._feed.fetch_results()
        except Exception as e:  # a custom client must not kill the loop
            logger.exception("Feed client raised")
            feed = FeedSnapshot(ok=False, error=str(e))

        if not feed.ok:
            logger.warning("Skipping tick: feed unavailable (%s)", feed.error)
            report = TickReport(started_at=started_at, feed_ok=False, feed_error=feed.error)
            self._record(report)
            return report

        with session_scope(self._session_factory) as session:
            markets = [
                MarketRef(m.id, m.name, m.open_time, m.close_time)
                for m in self._markets.list_auto_result_markets(session)
            ]

        now_local = started_at.astimezone(self.tz)
        if self.workers > 1 and len(markets) > 1:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="auto-result") as pool:
                outcomes = list(pool.map(lambda m: self._process_market(m, feed, now_local), markets))
        else:
            outcomes = [self._process_market(m, feed, now_local) for m in markets]

        report = TickReport(started_at=started_at, feed_ok=True, outcomes=outcomes)
        declared = sum(len(o.declared) for o in outcomes)
        logger.info("Tick done: %d markets, %d declarations", len(outcomes), declared)
        self._record(report)
        return report

    def _record(self, report: TickReport) -> None:
        with self._lock:
            self._ticks += 1
            self._last_tick_at = report.started_at
            self._last_report = report

    def _process_market(self, market: MarketRef, feed: FeedSnapshot, now_local: datetime) -> MarketOutcome:
        outcome = MarketOutcome(market_id=market.id, market_name=market.name)
        try:
            window = market_window(market, now_local, self.tolerance)
            outcome.day = window.day
            if not window.open_status.due:
                outcome.skipped = "open not due"
                return outcome

            with session_scope(self._session_factory) as session:
                self._declare_due(session, market, window, feed, outcome)
        except FeedFormatError as e:
            logger.info("Market %s: unusable feed result: %s", market.name, e)
            outcome.skipped = f"invalid feed result: {e}"
        except Exception as e:
            logger.exception("Market %s: auto result failed", market.name)
            outcome.error = str(e)
        return outcome

    def _declare_due(
        self,
        session: Session,
        market: MarketRef,
        window: MarketWindow,
        feed: FeedSnapshot,
        outcome: MarketOutcome,
    ) -> None:
        state = state_of(self._declarations.current_result(session, market.id, window.day))
        if state is ResultState.CLOSED_DECLARED:
            outcome.skipped = "already declared"
            return
        if state is ResultState.OPEN_DECLARED and not window.close_status.due:
            outcome.skipped = "close not due"
            return

        entry = feed.find(market.name)
        if entry is None:
            outcome.skipped = "no feed entry"
            return
        if not is_for_day(entry.updated_date, window.day):
            logger.debug("Market %s: feed entry dated %s is not for %s", market.name, entry.updated_date, window.day)
            outcome.skipped = "feed entry not for market day"
            return

        result = parse_feed_result(entry.result)
        open_ank = self._open_ank(market, result)

        if state is ResultState.NO_RESULT:
            declared = self._declarations.declare_open(
                session, market.id, window.day, result.open_number, open_ank, declared_by="auto"
            )
            self._note(outcome, declared, window.open_status, market)

        if not window.close_status.due:
            return
        if not result.has_close:
            outcome.skipped = "close not published"
            return

        close_number = str(result.close_number)
        declared = self._declarations.declare_close(
            session, market.id, window.day, close_number, digit_sum(close_number)
        )
        self._note(outcome, declared, window.close_status, market)

    @staticmethod
    def _open_ank(market: MarketRef, result: FeedResult) -> int:
        if not result.has_close:
            return result.open_main

        # In "NNN-MM-NNN" the middle part is the jodi, so the open ank comes from the open panna.
        open_ank = digit_sum(result.open_number)
        expected = combine_ank(open_ank, digit_sum(str(result.close_number)))
        if result.open_main != expected:
            logger.warning(
                "Market %s: feed jodi %02d does not match panna anks (%02d)", market.name, result.open_main, expected
            )
        return open_ank

    @staticmethod
    def _note(outcome: MarketOutcome, declared: DeclarationOutcome, status: PhaseStatus, market: MarketRef) -> None:
        if declared.declared:
            mode = "on-time" if status is PhaseStatus.ON_TIME else "recovery"
            logger.info("Market %s: %s %s declaration for %s", market.name, mode, declared.phase, outcome.day)
            outcome.declared.append(declared.phase)
        elif declared.rejected:
            outcome.skipped = declared.reason

    # Lifecycle

    def _run_loop(self, stop_event: threading.Event) -> None:
        logger.info("Recovery scheduler started (interval=%ss)", self.interval_seconds)
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Recovery scheduler tick failed")
            stop_event.wait(self.interval_seconds)
        logger.info("Recovery scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        with self._lock:
            if self.is_running:
                return False
            # Each loop owns its event; a loop stopped mid-tick stays stopped.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop, args=(self._stop_event,), name="recovery-scheduler", daemon=True
            )
            self._thread.start()
            return True

    def stop(self, timeout: float | None = 5.0) -> bool:
        with self._lock:
            thread = self._thread
            if thread is None:
                return False
            self._stop_event.set()
            self._thread = None
        thread.join(timeout)
        return True

    def restart(self) -> None:
        self.stop()
        self.start()

    def status(self) -> dict[str, object]:
        with self._lock:
            last = self._last_report
            return {
                "running": self.is_running,
                "interval_seconds": self.interval_seconds,
                "tolerance_minutes": int(self.tolerance.total_seconds() // 60),
                "timezone": str(self.tz),
                "ticks": self._ticks,
                "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
                "last_feed_ok": last.feed_ok if last else None,
            }
