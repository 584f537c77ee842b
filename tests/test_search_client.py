from __future__ import annotations

import json

import pytest
import requests

from brand_site_finder.context import RequestQuota
from brand_site_finder.errors import (
    QuotaExceededError,
    SearchBadRequest,
    SearchError,
    SearchRateLimited,
    SearchTransportError,
)
from brand_site_finder.search_client import NaverSearchClient


def _response(status: int, payload=None, raw: bytes | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = raw if raw is not None else json.dumps(payload or {}).encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class FakeSession(requests.Session):
    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(responses, limit: int = 100, used: int = 0):
    session = FakeSession(responses)
    quota = RequestQuota(limit, used)
    return NaverSearchClient("id", "secret", quota, session=session), session, quota


def test_search_returns_items_and_counts_request():
    payload = {"items": [{"link": "https://a.co.kr", "title": "<b>A</b>", "description": "공식"}]}
    client, session, quota = _client([_response(200, payload)])

    items = client.search("A 공식홈페이지", display=20)

    assert items == [{"link": "https://a.co.kr", "title": "<b>A</b>", "description": "공식"}]
    assert quota.used == 1
    url, kwargs = session.calls[0]
    assert url == "https://openapi.naver.com/v1/search/webkr.json"
    assert kwargs["params"] == {"query": "A 공식홈페이지", "display": 20, "start": 1, "sort": "sim"}
    assert session.headers["X-Naver-Client-Id"] == "id"
    assert session.headers["X-Naver-Client-Secret"] == "secret"


def test_quota_exhausted_fails_before_network():
    client, session, quota = _client([_response(200)], limit=5, used=5)

    with pytest.raises(QuotaExceededError):
        client.search("anything")

    assert session.calls == []
    assert quota.used == 5


@pytest.mark.parametrize(
    "status,error",
    [(429, SearchRateLimited), (400, SearchBadRequest), (401, SearchError)],
)
def test_status_mapping(status, error):
    client, session, _ = _client([_response(status)])

    with pytest.raises(error):
        client.search("q")
    assert len(session.calls) == 1


def test_transport_fault_is_retried_once():
    client, session, quota = _client([
        requests.ConnectionError("reset"),
        _response(200, {"items": []}),
    ])

    assert client.search("q") == []
    assert len(session.calls) == 2
    assert quota.used == 2


def test_persistent_server_error_surfaces_as_transport_error():
    client, session, _ = _client([_response(502), _response(503)])

    with pytest.raises(SearchTransportError):
        client.search("q")
    assert len(session.calls) == 2


def test_missing_items_yields_empty_list():
    client, _, _ = _client([_response(200, {"total": 0})])
    assert client.search("q") == []


def test_invalid_json_is_a_search_error():
    client, _, _ = _client([_response(200, raw=b"<html>")])
    with pytest.raises(SearchError):
        client.search("q")
