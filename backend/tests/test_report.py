from models import AnalysisSource, Restaurant
from config import Configuration
from services.menu_analysis import MenuAnalyzer
from services.recommendation import RecommendationEngine
from services.report import build_menu_report, build_report


def test_build_report_basic():
    r = Restaurant(
        name="Celiac Corner",
        address="12 Oak Ave",
        latitude=0.0,
        longitude=0.0,
        place_id="p1",
        gluten_free_menu=("Pizza", "Pasta"),
        distance_meters=400.0,
        rating=4.6,
        open_now=True,
    )
    ranked = RecommendationEngine().top_n([r], {"p1": "safe"})
    md = build_report(ranked)
    assert "## Gluten-Free Recommendations" in md
    assert "### Top Picks" in md
    assert "#### 1. Celiac Corner" in md
    assert "Score: 100.0" in md
    assert "Marked Safe" in md
    assert "GF menu items: Pizza, Pasta" in md
    assert "Open now" in md


def test_build_report_empty():
    md = build_report([])
    assert "No restaurants to recommend yet." in md
    assert "Top Picks" not in md


def test_build_report_respects_limit():
    restaurants = [
        Restaurant(name=f"R{i}", address=None, latitude=0.0, longitude=0.0, distance_meters=20000.0)
        for i in range(4)
    ]
    md = build_report(RecommendationEngine().score(restaurants), limit=2)
    assert "#### 2. R1" in md
    assert "R2" not in md
    assert "Not rated" in md
    assert "Hours unknown" in md


def test_build_menu_report():
    result = MenuAnalyzer(Configuration()).analyze(
        "Quinoa Bowl - gluten-free\nBread Basket - wheat rolls", "Cafe", AnalysisSource.MANUAL
    )
    md = build_menu_report(result, "Cafe")
    assert "## Menu Analysis: Cafe" in md
    assert "Manual Entry" in md
    assert "Quinoa Bowl: Likely GF (gluten-free)" in md
    assert "Bread Basket: May Contain Gluten (wheat)" in md


def test_build_report_unknown_distance():
    r = Restaurant(name="Mystery Cafe", address=None, latitude=0.0, longitude=0.0)
    md = build_report(RecommendationEngine().score([r]))
    assert "- Distance unknown" in md
    assert "nan" not in md
