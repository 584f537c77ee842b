from __future__ import annotations

import pytest

from brand_site_finder.candidates import generate_domains
from brand_site_finder.discovery import BrandWebsiteFinder
from brand_site_finder.errors import QuotaExceededError, SearchBadRequest, SearchRateLimited, SearchTransportError
from brand_site_finder.extractor import build_search_queries
from brand_site_finder.records import BrandInput

from stubs import StubProber, StubSearchClient, make_context, recording_pacing, search_item


def _finder(context, prober, search=None, **kwargs) -> BrandWebsiteFinder:
    return BrandWebsiteFinder(context, prober, search, **kwargs)


def test_first_guess_found():
    context = make_context()
    prober = StubProber({"testbrand.co.kr": "https://testbrand.co.kr"})
    search = StubSearchClient(context.quota)
    brand = BrandInput(name="테스트브랜드", english_name="testbrand")

    result = _finder(context, prober, search).find(brand)

    assert result.status == "found"
    assert result.search_method == "domain_guessed"
    assert result.primary_website == "https://testbrand.co.kr"
    assert result.websites == ["https://testbrand.co.kr"]
    assert result.search_queries_tried == []
    assert result.guessed_domain.pattern_rank == 0
    assert prober.calls == ["testbrand.co.kr"]
    assert search.calls == []


@pytest.mark.parametrize("workers", [1, 4])
def test_earliest_existing_guess_wins(workers):
    domains = generate_domains("testbrand")
    context = make_context()
    prober = StubProber({
        domains[2]: f"https://{domains[2]}",
        domains[4]: f"https://{domains[4]}",
    })

    result = _finder(context, prober, probe_workers=workers).find(BrandInput(name="테스트", english_name="testbrand"))

    assert result.primary_website == f"https://{domains[2]}"
    assert result.guessed_domain.original_domain == domains[2]
    assert result.guessed_domain.pattern_rank == 2
    if workers == 1:
        assert prober.calls == domains[:3]


def test_search_fallback_without_english_name():
    context = make_context()
    brand = BrandInput(name="테스트브랜드")
    first_query = build_search_queries(brand.name, None)[0]
    search = StubSearchClient(context.quota, {
        first_query: [search_item("https://테스트브랜드.co.kr", "테스트브랜드", "테스트브랜드 공식 온라인")],
    })
    prober = StubProber()

    result = _finder(context, prober, search).find(brand)

    assert result.status == "found"
    assert result.search_method == "naver_search"
    assert result.primary_website == "https://테스트브랜드.co.kr"
    assert result.search_queries_tried == [first_query]
    assert prober.calls == []
    assert context.quota.used == 1


def test_only_excluded_results_tries_every_query():
    context = make_context()
    brand = BrandInput(name="테스트브랜드", english_name="testbrand")
    excluded = [search_item("https://www.musinsa.com/brand/testbrand", "테스트브랜드 공식 홈페이지")]
    search = StubSearchClient(context.quota, default=excluded)

    result = _finder(context, StubProber(), search).find(brand)

    queries = build_search_queries(brand.name, brand.english_name)
    assert result.status == "not_found"
    assert result.search_method == "none"
    assert result.websites == []
    assert result.primary_website is None
    assert result.search_queries_tried == queries
    assert search.calls == queries


def test_search_stops_at_first_productive_query():
    context = make_context()
    brand = BrandInput(name="커버낫", english_name="Covernat")
    queries = build_search_queries(brand.name, brand.english_name)
    search = StubSearchClient(context.quota, {
        queries[1]: [
            search_item("https://covernat.net", "커버낫"),
            search_item("https://www.covernat.co.kr", "커버낫 공식"),
        ],
    })

    result = _finder(context, StubProber(), search).find(brand)

    assert search.calls == queries[:2]
    assert result.websites == ["https://www.covernat.co.kr", "https://covernat.net"]
    assert result.primary_website == "https://www.covernat.co.kr"


def test_cached_result_makes_no_network_calls():
    context = make_context()
    prober = StubProber({"testbrand.co.kr": "https://testbrand.co.kr"})
    finder = _finder(context, prober)
    brand = BrandInput(name="테스트브랜드", english_name="testbrand")

    first = finder.find(brand)
    again = finder.find(BrandInput(name="  테스트브랜드 ", english_name="testbrand"))

    assert again.from_cache
    assert not first.from_cache
    assert again.primary_website == first.primary_website
    assert prober.calls == ["testbrand.co.kr"]


def test_rate_limit_cools_down_then_moves_to_next_query():
    slept = []
    context = make_context(pacing=recording_pacing(slept, cooldown=5.0))
    brand = BrandInput(name="커버낫")
    queries = build_search_queries(brand.name, None)
    search = StubSearchClient(context.quota, {
        queries[0]: SearchRateLimited("429"),
        queries[1]: [search_item("https://covernat.co.kr", "커버낫 공식 홈페이지")],
    })

    result = _finder(context, StubProber(), search).find(brand)

    assert result.status == "found"
    assert search.calls == queries[:2]
    assert slept == [5.0]


def test_item_with_non_text_title_does_not_fail_the_brand():
    context = make_context()
    brand = BrandInput(name="테스트브랜드", english_name="testbrand")
    search = StubSearchClient(context.quota, default=[
        {"link": "https://testbrand.co.kr", "title": ["x"]},
        search_item("https://www.testbrand.com", "테스트브랜드 공식"),
    ])

    result = _finder(context, StubProber(), search).find(brand)

    assert result.status == "found"
    assert result.websites == ["https://www.testbrand.com"]


def test_all_queries_faulted_is_an_error():
    context = make_context()
    brand = BrandInput(name="커버낫")
    search = StubSearchClient(context.quota, default=SearchTransportError("timeout"))

    result = _finder(context, StubProber(), search).find(brand)

    assert result.status == "error"
    assert result.error_detail == "timeout"
    assert len(result.search_queries_tried) == 3


def test_bad_request_records_error_and_caches_it():
    context = make_context()
    brand = BrandInput(name="커버낫")
    search = StubSearchClient(context.quota, default=SearchBadRequest("bad query"))
    finder = _finder(context, StubProber(), search)

    result = finder.find(brand)

    assert result.status == "error"
    assert result.primary_website is None
    assert result.search_queries_tried == build_search_queries(brand.name, None)[:1]
    assert finder.find(brand).from_cache


def test_quota_exceeded_propagates_and_is_not_cached():
    context = make_context(daily_quota_limit=0)
    brand = BrandInput(name="커버낫")
    finder = _finder(context, StubProber(), StubSearchClient(context.quota))

    with pytest.raises(QuotaExceededError):
        finder.find(brand)
    assert context.cached(brand.name) is None


def test_no_search_client_means_not_found():
    context = make_context()
    result = _finder(context, StubProber()).find(BrandInput(name="커버낫", english_name="Covernat"))

    assert result.status == "not_found"
    assert result.search_queries_tried == []
