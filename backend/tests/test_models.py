from __future__ import annotations

import dataclasses

import pytest

from models import (
    FavoriteStatus,
    GFClassification,
    MenuScanStatus,
    RecommendationReason,
    Restaurant,
)


def _restaurant(**kwargs) -> Restaurant:
    return Restaurant(name="Cafe", address="1 Main St", latitude=0.0, longitude=0.0, **kwargs)


def test_gluten_free_options_from_flag_or_menu() -> None:
    assert not _restaurant().has_gluten_free_options()
    assert _restaurant(has_gf_menu=True).has_gluten_free_options()
    assert _restaurant(gluten_free_menu=("Salad",)).has_gluten_free_options()
    assert not _restaurant(has_gf_menu=True).has_confirmed_gf_menu()


def test_restaurant_is_immutable() -> None:
    r = _restaurant(gluten_free_menu=["Salad", "Soup"])
    assert r.gluten_free_menu == ("Salad", "Soup")
    with pytest.raises(dataclasses.FrozenInstanceError):
        r.rating = 4.0  # type: ignore[misc]


def test_with_scan_keeps_menu_when_none_given() -> None:
    r = _restaurant(gluten_free_menu=("Salad",))
    failed = r.with_scan(MenuScanStatus.FAILED, 123)
    updated = r.with_scan(MenuScanStatus.SUCCESS, 456, ("Tacos",))

    assert failed.gluten_free_menu == ("Salad",)
    assert failed.menu_scan_timestamp == 123
    assert updated.gluten_free_menu == ("Tacos",)
    assert r.menu_scan_status is MenuScanStatus.NOT_STARTED


def test_cache_key_prefers_place_id() -> None:
    assert _restaurant(place_id="abc").cache_key() == "pid:abc"
    assert _restaurant().cache_key() == "name:cafe|1 main st"


def test_favorite_status_parse() -> None:
    assert FavoriteStatus.parse("safe") is FavoriteStatus.SAFE
    assert FavoriteStatus.parse(" Try ") is FavoriteStatus.TRY
    assert FavoriteStatus.parse(FavoriteStatus.AVOID) is FavoriteStatus.AVOID
    assert FavoriteStatus.parse("") is None
    assert FavoriteStatus.parse("unknown") is None
    assert FavoriteStatus.parse(None) is None


def test_reason_order_and_labels() -> None:
    assert list(RecommendationReason)[0] is RecommendationReason.HIGH_GF_OPTIONS
    assert RecommendationReason.USER_FAVORITE.display_name == "Marked Safe"
    assert GFClassification.NOT_GF.display_name == "Not Gluten-Free"
