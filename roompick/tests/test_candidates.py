from __future__ import annotations

import httpx
import pytest

from roompick.candidates.config import CandidateSourceConfig
from roompick.candidates.models import Shop
from roompick.candidates.pool import dedupe_shops, populate_pool
from roompick.candidates.source import HotPepperClient
from roompick.config import EngineConfig
from roompick.errors import UpstreamUnavailableError
from roompick.rooms.models import RoomConditions


def _raw(shop_id, budget=None):
    data = {"id": shop_id, "name": f"Shop {shop_id}", "genre": {"name": "Izakaya"}}
    if budget:
        data["budget"] = {"code": "B003", "name": budget}
    return data


def _client(handler, api_key="test-key"):
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return HotPepperClient(CandidateSourceConfig(api_key=api_key, page_size=2), http_client)


# ── HotPepperClient ──────────────────────────────────────────────────────


def test_search_parses_shops_and_sends_budget_codes():
    seen = {}

    def handler(request):
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"results": {"shop": [_raw("a"), _raw("b")]}})

    with _client(handler) as client:
        shops = client.search("Shibuya", ["B002", "B003"])

    assert [s.id for s in shops] == ["a", "b"]
    assert shops[0].genre_name == "Izakaya"
    assert seen["keyword"] == "Shibuya"
    assert seen["budget"] == "B002,B003"
    assert seen["format"] == "json"


def test_search_keeps_extra_display_fields():
    def handler(request):
        raw = _raw("a")
        raw["photo"] = {"pc": {"l": "https://example.com/a.jpg"}}
        return httpx.Response(200, json={"results": {"shop": [raw]}})

    shops = _client(handler).search("Shibuya")
    assert shops[0].model_dump()["photo"]["pc"]["l"].endswith("a.jpg")


def test_search_http_error_is_upstream_unavailable():
    client = _client(lambda request: httpx.Response(503))
    with pytest.raises(UpstreamUnavailableError):
        client.search("Shibuya")


def test_search_api_error_is_upstream_unavailable():
    client = _client(lambda request: httpx.Response(200, json={"results": {"error": [{"code": 2000}]}}))
    with pytest.raises(UpstreamUnavailableError):
        client.search("Shibuya")


def test_search_without_api_key_fails_fast():
    client = _client(lambda request: httpx.Response(200, json={}), api_key="")
    with pytest.raises(UpstreamUnavailableError):
        client.search("Shibuya")


# ── Pool population ──────────────────────────────────────────────────────


class FakeClient:
    def __init__(self, pages=None, fail_filtered=False, fail_all=False, page_size=2):
        self.config = CandidateSourceConfig(api_key="x", page_size=page_size)
        self.pages = pages or {}
        self.fail_filtered = fail_filtered
        self.fail_all = fail_all
        self.calls = []

    def search(self, keyword, budget_codes=None, start=1, count=None):
        self.calls.append({"keyword": keyword, "budget_codes": budget_codes, "start": start})
        if self.fail_all or (self.fail_filtered and budget_codes):
            raise UpstreamUnavailableError("boom")
        return [Shop.model_validate(r) for r in self.pages.get(start, [])]


def test_dedupe_keeps_first_occurrence():
    shops = [Shop(id="a", name="first"), Shop(id="b"), Shop(id="a", name="second")]
    assert [(s.id, s.name) for s in dedupe_shops(shops)] == [("a", "first"), ("b", "")]


def test_pool_pages_dedupes_and_filters():
    client = FakeClient(pages={
        1: [_raw("a", "1001～1500円"), _raw("b", "5001～7000円")],
        3: [_raw("a", "1001～1500円"), _raw("c")],
        5: [],
    })
    conditions = RoomConditions(area="Shibuya", budget_min=1000, budget_max=2000)
    shops, meta = populate_pool(conditions, client)

    assert [s.id for s in shops] == ["a", "c"]
    assert meta.fetched_count == 3
    assert meta.budget_codes == ["B002", "B003", "B004"]
    assert meta.budget_filter_used
    assert not meta.fallback_used
    assert [c["start"] for c in client.calls] == [1, 3, 5]


def test_pool_is_capped():
    client = FakeClient(pages={1: [_raw("a"), _raw("b")], 3: [_raw("c"), _raw("d")]})
    shops, meta = populate_pool(RoomConditions(area="x"), client, EngineConfig(candidate_pool_size=3))
    assert len(shops) == 3
    assert meta.candidate_pool_count == 3


def test_failed_filtered_fetch_falls_back_to_unfiltered():
    client = FakeClient(pages={1: [_raw("a"), _raw("a")]}, fail_filtered=True)
    conditions = RoomConditions(area="Shibuya", budget_max=1000)
    shops, meta = populate_pool(conditions, client)

    assert [s.id for s in shops] == ["a"]
    assert meta.fallback_used
    assert client.calls[-1]["budget_codes"] is None


def test_upstream_outage_yields_empty_pool():
    client = FakeClient(fail_all=True)
    shops, meta = populate_pool(RoomConditions(area="Shibuya"), client)
    assert shops == []
    assert meta.fallback_used
    assert len(client.calls) == 2


def test_filter_that_removes_everything_is_ignored():
    client = FakeClient(pages={1: [_raw("a", "10001～15000円")]})
    conditions = RoomConditions(area="Shibuya", budget_max=1000)
    shops, meta = populate_pool(conditions, client)
    assert [s.id for s in shops] == ["a"]
    assert not meta.budget_filter_used
    assert meta.filtered_count == 0
