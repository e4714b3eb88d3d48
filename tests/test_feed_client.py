from __future__ import annotations

import hashlib
import hmac

import requests

from matka.services.feed_client import ExternalFeedClient, FeedEntry, FeedSnapshot, sign_request


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, body_is_json: bool = True) -> None:
        self.status_code = status_code
        self._payload = payload
        self._body_is_json = body_is_json

    def json(self):
        if not self._body_is_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttp:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _client(http: FakeHttp) -> ExternalFeedClient:
    return ExternalFeedClient(
        "https://feed.example/api/results", "key-1", "secret-1", timeout_seconds=3.0, http=http
    )


PAYLOAD = {
    "success": True,
    "data": {
        "live_result": [{"name": "MOHINI", "result": "Loading..."}],
        "all_result": [
            {"name": "MOHINI", "result": "356-41-128", "updated_date": "19-10-2026"},
            {"name": "KALYAN", "result": "129-2", "updated_date": "19-10-2026"},
            {"name": "", "result": "111-3"},
            {"name": "MILAN"},
        ],
    },
}


def test_sign_request_is_hmac_sha256_over_key_method_timestamp():
    expected = hmac.new(b"secret-1", b"key-1GET2026-10-19T05:30:00.000Z", hashlib.sha256).hexdigest()
    assert sign_request("key-1", "secret-1", "get", "2026-10-19T05:30:00.000Z") == expected


def test_fetch_sends_signed_headers_and_timeout():
    http = FakeHttp(FakeResponse(payload=PAYLOAD))

    _client(http).fetch_results()

    [call] = http.calls
    headers = call["headers"]
    assert call["timeout"] == 3.0
    assert headers["X-API-Key"] == "key-1"
    assert headers["X-Timestamp"].endswith("Z")
    assert headers["X-Signature"] == sign_request("key-1", "secret-1", "GET", headers["X-Timestamp"])


def test_fetch_reads_only_all_result_and_skips_malformed_items():
    snapshot = _client(FakeHttp(FakeResponse(payload=PAYLOAD))).fetch_results()

    assert snapshot.ok
    assert snapshot.entries == [
        FeedEntry("MOHINI", "356-41-128", "19-10-2026"),
        FeedEntry("KALYAN", "129-2", "19-10-2026"),
    ]


def test_non_200_is_a_failed_snapshot():
    snapshot = _client(FakeHttp(FakeResponse(status_code=502))).fetch_results()

    assert not snapshot.ok
    assert snapshot.status_code == 502
    assert snapshot.error == "HTTP 502"


def test_transport_error_is_a_failed_snapshot():
    snapshot = _client(FakeHttp(error=requests.Timeout("read timed out"))).fetch_results()

    assert not snapshot.ok
    assert "timed out" in snapshot.error


def test_non_json_body_is_a_failed_snapshot():
    snapshot = _client(FakeHttp(FakeResponse(body_is_json=False))).fetch_results()

    assert not snapshot.ok
    assert snapshot.error == "invalid JSON"


def test_unsuccessful_payload_is_a_failed_snapshot():
    payload = {"success": False, "message": "Invalid signature"}

    snapshot = _client(FakeHttp(FakeResponse(payload=payload))).fetch_results()

    assert not snapshot.ok
    assert snapshot.error == "Invalid signature"


def test_find_matches_market_name_case_insensitively():
    snapshot = FeedSnapshot(ok=True, entries=[FeedEntry("Mohini ", "356-4", "19-10-2026")])

    assert snapshot.find("MOHINI").result == "356-4"
    assert snapshot.find("KALYAN") is None
