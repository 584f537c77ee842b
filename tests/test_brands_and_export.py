from __future__ import annotations

import csv
import json

import pytest

from brand_site_finder.brands import load_brands, parse_brands
from brand_site_finder.context import RunState
from brand_site_finder.exporter import CSV_COLUMNS, export_report
from brand_site_finder.records import BrandInput, DiscoveryResult
from brand_site_finder.scheduler import RunReport


def test_load_brands_from_all_brands_document(tmp_path):
    path = tmp_path / "brands.json"
    path.write_text(
        json.dumps({
            "allBrands": [
                {"brandName": " 커버낫 ", "brandNameEnglish": "Covernat", "sourceCategory": "top", "isBest": True},
                {"name": "무명", "englishName": "  "},
                {"brandName": ""},
                {"brandNameEnglish": "NoName"},
            ]
        }, ensure_ascii=False),
        encoding="utf-8",
    )

    brands = load_brands(path)

    assert brands == [
        BrandInput(name="커버낫", english_name="Covernat", category="top", is_featured=True),
        BrandInput(name="무명", english_name=None, category="unknown", is_featured=False),
    ]


def test_parse_brands_accepts_plain_list_and_rejects_other_shapes():
    assert [b.name for b in parse_brands([{"name": "a"}, "junk"])] == ["a"]
    with pytest.raises(ValueError):
        parse_brands({"brands": []})


def _state() -> RunState:
    state = RunState(25000, request_count=12)
    found = DiscoveryResult(brand_name="커버낫", english_name="Covernat", category="top", is_featured=True)
    found.add_websites(["https://covernat.co.kr", "https://covernat.net"])
    found.search_queries_tried = ["커버낫 공식홈페이지"]
    found.mark_found("naver_search")
    state.record(found)
    missing = DiscoveryResult(brand_name="무명")
    missing.mark_not_found()
    state.record(missing)
    return state


def test_export_report_writes_json_and_csv(tmp_path):
    state = _state()
    report = RunReport.build(state, total_brands=2, elapsed=3.25)

    paths = export_report(report, state, tmp_path / "out")

    with open(paths["json"], encoding="utf-8") as handle:
        document = json.load(handle)
    assert document["metadata"]["found"] == 1
    assert document["metadata"]["api_requests"] == 12
    assert "exports" not in document["metadata"]
    assert [r["brand_name"] for r in document["failed_results"]] == ["무명"]

    with open(paths["csv"], encoding="utf-8-sig", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == CSV_COLUMNS
    assert rows[1] == [
        "커버낫",
        "Covernat",
        "top",
        "Y",
        "https://covernat.co.kr",
        "https://covernat.co.kr; https://covernat.net",
        "naver_search",
        "커버낫 공식홈페이지",
        "N",
        "found",
    ]
    assert len(rows) == 2


def test_report_rates():
    report = RunReport.build(_state(), total_brands=10, elapsed=1.0)

    assert report.processed == 2
    assert report.success_rate == 50.0
    assert report.search_rate == 50.0
    assert report.guess_rate == 0.0
    assert report.not_found == 1
