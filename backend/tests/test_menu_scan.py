from __future__ import annotations

from typing import Dict, List

import pytest

from config import DAY_MS, Configuration
from models import AnalysisSource, GFSafetyLevel, MenuScanStatus, Restaurant
from services.menu_analysis import AnalyzerNotReadyError, MenuAnalyzer
from services.menu_fetcher import MenuFetchError
from services.menu_scan import AnalysisCache, MenuScanner

NOW = 1_700_000_000_000

MENU = "Quinoa Bowl - gluten-free and celiac friendly\nBread Basket - wheat rolls"


class FakeFetcher:
    def __init__(self, pages: Dict[str, str]) -> None:
        self.pages = pages
        self.calls: List[str] = []

    def fetch_text(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise MenuFetchError(f"upstream 404: {url}")
        return self.pages[url]


def _restaurant(name: str = "Cafe", **kwargs) -> Restaurant:
    return Restaurant(name=name, address=None, latitude=0.0, longitude=0.0, **kwargs)


def _scanner(pages: Dict[str, str], analyzer: MenuAnalyzer | None = None) -> MenuScanner:
    cfg = Configuration()
    return MenuScanner(cfg, analyzer or MenuAnalyzer(cfg), fetcher=FakeFetcher(pages))  # type: ignore[arg-type]


def test_needs_rescan() -> None:
    scanner = _scanner({})
    assert scanner.needs_rescan(_restaurant(), NOW)
    in_flight = _restaurant(menu_scan_status=MenuScanStatus.FETCHING, menu_scan_timestamp=NOW - 1000)
    stuck = _restaurant(menu_scan_status=MenuScanStatus.FETCHING, menu_scan_timestamp=NOW - 30 * DAY_MS)
    assert not scanner.needs_rescan(in_flight, NOW)
    assert scanner.needs_rescan(stuck, NOW)

    fresh = _restaurant(menu_scan_status=MenuScanStatus.SUCCESS, menu_scan_timestamp=NOW - DAY_MS)
    stale = _restaurant(menu_scan_status=MenuScanStatus.FAILED, menu_scan_timestamp=NOW - 3 * DAY_MS)
    assert not scanner.needs_rescan(fresh, NOW)
    assert scanner.needs_rescan(stale, NOW)


def test_scan_without_website() -> None:
    scanner = _scanner({})
    outcome = scanner.scan(_restaurant(), NOW)
    assert outcome.restaurant.menu_scan_status is MenuScanStatus.NO_WEBSITE
    assert outcome.restaurant.menu_scan_timestamp == NOW
    assert outcome.result is None
    assert scanner.fetcher.calls == []  # type: ignore[attr-defined]


def test_fetch_failure_marks_failed() -> None:
    scanner = _scanner({})
    outcome = scanner.scan(_restaurant(website="https://gone.example"), NOW)
    assert outcome.restaurant.menu_scan_status is MenuScanStatus.FAILED
    assert "404" in (outcome.error or "")
    assert outcome.result is None


def test_successful_scan_updates_evidence() -> None:
    scanner = _scanner({"https://cafe.example": MENU})
    r = _restaurant(website="https://cafe.example")
    outcome = scanner.scan(r, NOW)

    assert outcome.result is not None
    assert outcome.result.source is AnalysisSource.WEBSITE
    assert outcome.result.safety_level is GFSafetyLevel.LIMITED
    updated = outcome.restaurant
    assert updated.menu_scan_status is MenuScanStatus.SUCCESS
    assert updated.menu_scan_timestamp == NOW
    assert updated.gluten_free_menu == ("Quinoa Bowl",)
    assert updated.has_gluten_free_options()
    assert not r.has_gluten_free_options()


def test_scan_without_gf_items_keeps_previous_menu() -> None:
    scanner = _scanner({"https://cafe.example": "Bread Basket - wheat rolls"})
    r = _restaurant(website="https://cafe.example", gluten_free_menu=("Old Salad",))
    outcome = scanner.scan(r, NOW)
    assert outcome.restaurant.menu_scan_status is MenuScanStatus.SUCCESS
    assert outcome.restaurant.gluten_free_menu == ("Old Salad",)


def test_second_scan_hits_cache() -> None:
    scanner = _scanner({"https://cafe.example": MENU})
    r = _restaurant(place_id="p1", website="https://cafe.example")
    scanner.scan(r, NOW)
    again = scanner.scan(r, NOW + 1000)

    assert scanner.fetcher.calls == ["https://cafe.example"]  # type: ignore[attr-defined]
    assert again.result is not None
    assert again.result.source is AnalysisSource.CACHED
    assert again.restaurant.gluten_free_menu == ("Quinoa Bowl",)


def test_scan_raises_when_analyzer_not_ready() -> None:
    cfg = Configuration()
    analyzer = MenuAnalyzer(cfg, readiness=lambda: False)
    scanner = _scanner({"https://cafe.example": MENU}, analyzer)
    with pytest.raises(AnalyzerNotReadyError):
        scanner.scan(_restaurant(website="https://cafe.example"), NOW)


def test_scan_all_keeps_order_and_skips_fresh() -> None:
    scanner = _scanner({"https://a.example": MENU})
    fresh = _restaurant("fresh", menu_scan_status=MenuScanStatus.SUCCESS, menu_scan_timestamp=NOW)
    restaurants = [
        _restaurant("a", place_id="a", website="https://a.example"),
        fresh,
        _restaurant("none", place_id="n"),
        _restaurant("broken", place_id="b", website="https://b.example"),
    ]
    outcomes = scanner.scan_all(restaurants, NOW)

    assert [o.restaurant.name for o in outcomes] == ["a", "fresh", "none", "broken"]
    assert [o.restaurant.menu_scan_status for o in outcomes] == [
        MenuScanStatus.SUCCESS,
        MenuScanStatus.SUCCESS,
        MenuScanStatus.NO_WEBSITE,
        MenuScanStatus.FAILED,
    ]
    assert outcomes[1].restaurant is fresh


def test_analysis_cache_expiry_and_eviction() -> None:
    result = MenuAnalyzer(Configuration()).analyze(MENU, "Cafe")
    cache = AnalysisCache(ttl_ms=1000, max_entries=2)
    cache.set("a", result, NOW)
    cache.set("b", result, NOW)
    assert cache.get("a", NOW + 10) is result
    cache.set("c", result, NOW)

    assert cache.get("b", NOW) is None  # least recently used
    assert cache.get("a", NOW) is result
    assert cache.get("c", NOW + 1000) is None
    assert len(cache) == 1
