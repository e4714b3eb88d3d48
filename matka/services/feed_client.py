"""Client for the external live-result feed.

Requests are signed: ``X-Signature = HMAC-SHA256(secret, key + method + timestamp)``.
The client never raises into the scheduler; every failure comes back as a
``FeedSnapshot`` with ``ok=False``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedEntry:
    market_name: str
    result: str
    updated_date: str


@dataclass(frozen=True)
class FeedSnapshot:
    ok: bool
    entries: list[FeedEntry] = field(default_factory=list)
    error: str | None = None
    status_code: int | None = None

    def find(self, market_name: str) -> FeedEntry | None:
        wanted = market_name.strip().upper()
        for entry in self.entries:
            if entry.market_name.strip().upper() == wanted:
                return entry
        return None


def _build_http_session(retries: int, backoff_factor: float = 0.3) -> requests.Session:
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retry))
    session.mount("http://", HTTPAdapter(max_retries=retry))
    return session


def sign_request(api_key: str, api_secret: str, method: str, timestamp: str) -> str:
    message = f"{api_key}{method.upper()}{timestamp}"
    return hmac.new(api_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _iso_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ExternalFeedClient:
    """Fetches per-market raw results from the external feed."""

    method = "GET"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_secret: str,
        *,
        timeout_seconds: float = 10.0,
        retries: int = 0,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self._api_key = api_key
        self._api_secret = api_secret
        self._timeout = timeout_seconds
        self._http = http or _build_http_session(retries)

    @classmethod
    def from_config(cls, config: Any) -> "ExternalFeedClient":
        return cls(
            base_url=str(config["FEED_BASE_URL"]),
            api_key=str(config["FEED_API_KEY"]),
            api_secret=str(config["FEED_API_SECRET"]),
            timeout_seconds=float(config["FEED_TIMEOUT_SECONDS"]),
            retries=int(config["FEED_RETRIES"]),
        )

    def _headers(self) -> dict[str, str]:
        timestamp = _iso_timestamp()
        return {
            "X-API-Key": self._api_key,
            "X-Timestamp": timestamp,
            "X-Signature": sign_request(self._api_key, self._api_secret, self.method, timestamp),
        }

    def fetch_results(self) -> FeedSnapshot:
        try:
            resp = self._http.get(self.base_url, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as e:
            logger.warning("Feed request failed: %s", e)
            return FeedSnapshot(ok=False, error=str(e))

        if resp.status_code != 200:
            logger.warning("Feed returned HTTP %s", resp.status_code)
            return FeedSnapshot(ok=False, error=f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Feed returned a non-JSON body")
            return FeedSnapshot(ok=False, error="invalid JSON", status_code=resp.status_code)

        return self._snapshot_from_payload(payload, resp.status_code)

    @staticmethod
    def _snapshot_from_payload(payload: Any, status_code: int | None = None) -> FeedSnapshot:
        if not isinstance(payload, dict) or not payload.get("success") or not isinstance(payload.get("data"), dict):
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning("Feed payload unusable: %s", message or "missing data")
            return FeedSnapshot(ok=False, error=str(message or "missing data"), status_code=status_code)

        # live_result carries "Loading..." placeholders; only all_result is authoritative.
        items = payload["data"].get("all_result") or []
        entries: list[FeedEntry] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("name") or not item.get("result"):
                logger.debug("Skipping malformed feed item: %r", item)
                continue
            entries.append(
                FeedEntry(
                    market_name=str(item["name"]),
                    result=str(item["result"]),
                    updated_date=str(item.get("updated_date") or ""),
                )
            )
        return FeedSnapshot(ok=True, entries=entries, status_code=status_code)
