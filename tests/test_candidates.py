from __future__ import annotations

from brand_site_finder.candidates import generate_candidates, generate_domains, normalize_identifier


def test_normalize_identifier_keeps_lowercase_alphanumerics():
    assert normalize_identifier("Covernat Co.") == "covernatco"
    assert normalize_identifier("  MLB-Korea 2024 ") == "mlbkorea2024"
    assert normalize_identifier(None) == ""
    assert normalize_identifier("테스트") == ""


def test_generate_domains_priority_order():
    domains = generate_domains("TestBrand")

    assert domains[:5] == [
        "testbrand.co.kr",
        "www.testbrand.co.kr",
        "testbrand.kr",
        "testbrand.com",
        "www.testbrand.com",
    ]
    assert domains[-1] == "testbrandkorea.com"
    assert "shop.testbrand.com" in domains
    assert "testbrandshop.co.kr" in domains
    assert len(domains) == len(set(domains))


def test_generate_domains_is_deterministic():
    assert generate_domains("Some Brand") == generate_domains("Some Brand")


def test_hyphenated_variants_only_with_whitespace():
    spaced = generate_domains("Some Brand")
    assert spaced[-2:] == ["some-brand.com", "some-brand.co.kr"]
    assert "somebrand.co.kr" == spaced[0]

    assert not any("-" in domain for domain in generate_domains("SomeBrand"))


def test_short_or_missing_identifier_yields_nothing():
    assert generate_domains(None) == []
    assert generate_domains("") == []
    assert generate_domains("A") == []
    assert generate_domains("한글이름") == []


def test_candidates_carry_generation_rank():
    candidates = generate_candidates("testbrand")

    assert [c.pattern_rank for c in candidates] == list(range(len(candidates)))
    assert candidates[0].domain == "testbrand.co.kr"
    assert all(c.score == 0 for c in candidates)
