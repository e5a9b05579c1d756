from __future__ import annotations

import math
from typing import Iterable, List, Mapping, Optional, Set, Tuple

from loguru import logger

from config import Configuration
from models import FavoriteStatus, RecommendationReason, RecommendedRestaurant, Restaurant
from utils import clamp


FavoriteLookup = Mapping[str, object]

_TAG_ORDER = {reason: idx for idx, reason in enumerate(RecommendationReason)}


def _distance_bonus(cfg: Configuration, meters: Optional[float]) -> float:
    if meters is None or math.isnan(meters):
        return 0.0
    meters = max(0.0, meters)
    for bound, bonus in cfg.distance_bonus_steps:
        if meters < bound:
            return bonus
    return 0.0


def _rating_bonus(cfg: Configuration, rating: Optional[float]) -> float:
    if rating is None or math.isnan(rating):
        return 0.0
    rating = clamp(rating, 0.0, 5.0)
    if rating <= cfg.rating_midpoint:
        return 0.0
    return (rating - cfg.rating_midpoint) / (5.0 - cfg.rating_midpoint) * cfg.rating_max_bonus


def _gf_bonus(cfg: Configuration, restaurant: Restaurant) -> float:
    if restaurant.has_confirmed_gf_menu():
        return cfg.gf_confirmed_bonus
    if restaurant.has_gf_menu:
        return cfg.gf_flag_bonus
    return 0.0


def _primary_reason(
    reasons: List[RecommendationReason],
    favorite: Optional[FavoriteStatus],
    restaurant: Restaurant,
    cfg: Configuration,
) -> str:
    if reasons:
        return reasons[0].display_name
    if favorite is FavoriteStatus.AVOID:
        return "Previously marked to avoid"
    if restaurant.has_gluten_free_options():
        return "Has gluten-free options"
    if restaurant.rating is not None and restaurant.rating >= cfg.highly_rated_threshold:
        return "Highly rated"
    return "Nearby restaurant"


class RecommendationEngine:
    """Additive signal scorer over already-resolved restaurant snapshots.

    Every signal is bounded by its configured magnitude and the total is
    clamped to [0, 100]. Missing optional fields contribute nothing.
    """

    def __init__(self, cfg: Optional[Configuration] = None) -> None:
        self.cfg = cfg or Configuration()

    def score_one(
        self,
        restaurant: Restaurant,
        favorites: FavoriteLookup,
        *,
        view_counts: Optional[Mapping[str, int]] = None,
        noted_place_ids: Optional[Set[str]] = None,
    ) -> RecommendedRestaurant:
        cfg = self.cfg
        score = cfg.base_score
        reasons: list[RecommendationReason] = []
        pid = restaurant.place_id

        # 1. favorite status
        favorite = FavoriteStatus.parse(favorites.get(pid)) if pid else None
        if favorite is FavoriteStatus.SAFE:
            score += cfg.favorite_safe_bonus
            reasons.append(RecommendationReason.USER_FAVORITE)
        elif favorite is FavoriteStatus.TRY:
            score += cfg.favorite_try_bonus
            reasons.append(RecommendationReason.WANT_TO_TRY)
        elif favorite is FavoriteStatus.AVOID:
            score -= cfg.favorite_avoid_penalty

        # 2. gluten-free evidence
        if restaurant.has_gluten_free_options():
            score += _gf_bonus(cfg, restaurant)
            reasons.append(RecommendationReason.HIGH_GF_OPTIONS)

        # 3. distance
        score += _distance_bonus(cfg, restaurant.distance_meters)
        if restaurant.distance_meters is not None and 0.0 <= restaurant.distance_meters < cfg.near_distance_m:
            reasons.append(RecommendationReason.NEARBY)

        # 4. rating
        score += _rating_bonus(cfg, restaurant.rating)
        if restaurant.rating is not None and restaurant.rating >= cfg.highly_rated_threshold:
            reasons.append(RecommendationReason.HIGHLY_RATED)

        # 5. open now; closed and unknown are treated alike
        if restaurant.open_now is True:
            score += cfg.open_now_bonus
            reasons.append(RecommendationReason.OPEN_NOW)

        # 6. user notes and interaction history
        if pid and noted_place_ids and pid in noted_place_ids:
            score += cfg.notes_bonus

        if view_counts is not None and pid:
            views = int(view_counts.get(pid, 0) or 0)
            if views >= cfg.visited_min_views:
                score += cfg.visited_bonus
                reasons.append(RecommendationReason.PREVIOUSLY_VISITED)
            elif views == 0 and score > cfg.new_discovery_threshold:
                reasons.append(RecommendationReason.NEW_TO_YOU)

        score = clamp(score, 0.0, 100.0)
        ordered = sorted(dict.fromkeys(reasons), key=_TAG_ORDER.__getitem__)

        return RecommendedRestaurant(
            restaurant=restaurant,
            score=float(round(score, 4)),
            reasons=tuple(ordered),
            reason=_primary_reason(ordered, favorite, restaurant, cfg),
        )

    def score(
        self,
        restaurants: Iterable[Restaurant],
        favorites: Optional[FavoriteLookup] = None,
        *,
        view_counts: Optional[Mapping[str, int]] = None,
        noted_place_ids: Optional[Set[str]] = None,
    ) -> List[RecommendedRestaurant]:
        """Score every restaurant and return them sorted by score, best first.

        Ties keep their input order.
        """
        restaurants = list(restaurants)
        if not restaurants:
            return []
        favorites = favorites or {}

        scored = [
            self.score_one(r, favorites, view_counts=view_counts, noted_place_ids=noted_place_ids)
            for r in restaurants
        ]
        scored.sort(key=lambda rec: rec.score, reverse=True)

        logger.debug(
            "scored restaurants={} favorites={} top={}",
            len(scored),
            len(favorites),
            _describe_top(scored),
        )
        return scored

    def top_n(
        self,
        restaurants: Iterable[Restaurant],
        favorites: Optional[FavoriteLookup] = None,
        limit: Optional[int] = None,
        *,
        view_counts: Optional[Mapping[str, int]] = None,
        noted_place_ids: Optional[Set[str]] = None,
    ) -> List[RecommendedRestaurant]:
        limit = self.cfg.default_top_n if limit is None else limit
        if limit <= 0:
            return []
        ranked = self.score(restaurants, favorites, view_counts=view_counts, noted_place_ids=noted_place_ids)
        return ranked[:limit]


def _describe_top(scored: List[RecommendedRestaurant]) -> Tuple[str, float] | None:
    if not scored:
        return None
    return (scored[0].restaurant.name, scored[0].score)
