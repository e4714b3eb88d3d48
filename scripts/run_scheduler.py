"""Run the auto-result recovery scheduler as a standalone worker.

Usage:
  python scripts/run_scheduler.py            # tick forever
  python scripts/run_scheduler.py --once     # single tick, print the report
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import signal
import sys
import threading
from collections.abc import Sequence

from dotenv import load_dotenv

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from matka.config import load_config
from matka.db import create_app_engine, create_session_factory
from matka.models.base import Base
from matka.services.recovery_scheduler import RecoveryScheduler

from matka import models  # noqa: F401

logger = logging.getLogger("run_scheduler")


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    env_local = PROJECT_ROOT / ".env.local"
    if env_local.exists():
        load_dotenv(dotenv_path=env_local, override=True)

    parser = argparse.ArgumentParser(description="Declare due and missed market results from the live feed")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between ticks")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        type=str,
        default=None,
        help="Override DB connection string (e.g. sqlite:///./matka.db)",
    )
    args = parser.parse_args(argv)

    config = load_config()
    if args.interval is not None:
        config["AUTO_RESULT_INTERVAL_SECONDS"] = args.interval

    logging.basicConfig(
        level=getattr(logging, str(config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    engine = create_app_engine(args.database_url or str(config["DATABASE_URL"]))
    Base.metadata.create_all(bind=engine)
    scheduler = RecoveryScheduler.from_config(config, create_session_factory(engine))

    if args.once:
        report = scheduler.run_once()
        print(json.dumps(report.as_dict(), indent=2))
        return 0 if report.feed_ok else 1

    done = threading.Event()

    def _shutdown(signum: int, _frame: object) -> None:
        logger.info("Signal %s received, stopping", signum)
        done.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler.start()
    done.wait()
    scheduler.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
