from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


DAY_MS = 24 * 60 * 60 * 1000


class Configuration(BaseModel):
    # Recommendation scoring
    base_score: float = Field(default=50.0)
    favorite_safe_bonus: float = Field(default=40.0)
    favorite_try_bonus: float = Field(default=15.0)
    favorite_avoid_penalty: float = Field(default=60.0)
    gf_confirmed_bonus: float = Field(default=20.0)
    gf_flag_bonus: float = Field(default=12.0)
    rating_midpoint: float = Field(default=3.0)
    rating_max_bonus: float = Field(default=15.0)
    highly_rated_threshold: float = Field(default=4.0)
    open_now_bonus: float = Field(default=5.0)
    notes_bonus: float = Field(default=5.0)
    visited_bonus: float = Field(default=10.0)
    visited_min_views: int = Field(default=2)
    new_discovery_threshold: float = Field(default=70.0)
    default_top_n: int = Field(default=5)

    # Distance: (upper bound in meters, bonus); beyond the last bound no bonus
    near_distance_m: float = Field(default=1000.0)
    distance_bonus_steps: list[tuple[float, float]] = Field(
        default_factory=lambda: [
            (500.0, 15.0),
            (1000.0, 12.0),
            (2000.0, 10.0),
            (5000.0, 7.0),
            (10000.0, 3.0),
        ]
    )

    # Menu analysis / scanning
    menu_rescan_ttl_days: float = Field(default=3.0)
    menu_max_chars: int = Field(default=50000)
    menu_fetch_timeout: int = Field(default=15)
    menu_fetch_retries: int = Field(default=2)
    menu_fetch_user_agent: str = Field(default="gf-recommender/0.1 (+menu-scan)")
    analysis_cache_max: int = Field(default=128)
    scan_workers: int = Field(default=4)

    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _check_tuning(self) -> "Configuration":
        if self.favorite_try_bonus >= self.favorite_safe_bonus:
            raise ValueError("favorite_try_bonus must be below favorite_safe_bonus")
        if not 0.0 < self.rating_midpoint < 5.0:
            raise ValueError("rating_midpoint must lie strictly between 0 and 5")
        for name in (
            "favorite_safe_bonus",
            "favorite_try_bonus",
            "favorite_avoid_penalty",
            "gf_confirmed_bonus",
            "gf_flag_bonus",
            "rating_max_bonus",
            "open_now_bonus",
            "notes_bonus",
            "visited_bonus",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.gf_flag_bonus > self.gf_confirmed_bonus:
            raise ValueError("gf_flag_bonus must not exceed gf_confirmed_bonus")
        bounds = [b for b, _ in self.distance_bonus_steps]
        bonuses = [v for _, v in self.distance_bonus_steps]
        if bounds != sorted(bounds) or bonuses != sorted(bonuses, reverse=True):
            raise ValueError("distance_bonus_steps must ascend by distance with non-increasing bonus")
        if self.scan_workers < 1:
            raise ValueError("scan_workers must be at least 1")
        return self

    @property
    def menu_rescan_ttl_ms(self) -> int:
        return int(self.menu_rescan_ttl_days * DAY_MS)

    @property
    def far_distance_m(self) -> float:
        return self.distance_bonus_steps[-1][0] if self.distance_bonus_steps else 0.0

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "base_score": os.getenv("BASE_SCORE"),
            "favorite_safe_bonus": os.getenv("FAVORITE_SAFE_BONUS"),
            "favorite_try_bonus": os.getenv("FAVORITE_TRY_BONUS"),
            "favorite_avoid_penalty": os.getenv("FAVORITE_AVOID_PENALTY"),
            "gf_confirmed_bonus": os.getenv("GF_CONFIRMED_BONUS"),
            "gf_flag_bonus": os.getenv("GF_FLAG_BONUS"),
            "rating_midpoint": os.getenv("RATING_MIDPOINT"),
            "rating_max_bonus": os.getenv("RATING_MAX_BONUS"),
            "highly_rated_threshold": os.getenv("HIGHLY_RATED_THRESHOLD"),
            "open_now_bonus": os.getenv("OPEN_NOW_BONUS"),
            "notes_bonus": os.getenv("NOTES_BONUS"),
            "visited_bonus": os.getenv("VISITED_BONUS"),
            "visited_min_views": os.getenv("VISITED_MIN_VIEWS"),
            "new_discovery_threshold": os.getenv("NEW_DISCOVERY_THRESHOLD"),
            "default_top_n": os.getenv("DEFAULT_TOP_N"),
            "near_distance_m": os.getenv("NEAR_DISTANCE_M"),
            # Menu scanning
            "menu_rescan_ttl_days": os.getenv("MENU_RESCAN_TTL_DAYS"),
            "menu_max_chars": os.getenv("MENU_MAX_CHARS"),
            "menu_fetch_timeout": os.getenv("MENU_FETCH_TIMEOUT"),
            "menu_fetch_retries": os.getenv("MENU_FETCH_RETRIES"),
            "menu_fetch_user_agent": os.getenv("MENU_FETCH_USER_AGENT"),
            "analysis_cache_max": os.getenv("ANALYSIS_CACHE_MAX"),
            "scan_workers": os.getenv("SCAN_WORKERS"),
            "log_level": os.getenv("LOG_LEVEL"),
        }

        for k, v in env_map.items():
            if v is None or not str(v).strip():
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def log_summary(self) -> str:
        return (
            "base=%s safe=%s try=%s avoid=%s gf=%s/%s rating_mid=%s near_m=%s ttl_days=%s workers=%s log_level=%s"
            % (
                self.base_score,
                self.favorite_safe_bonus,
                self.favorite_try_bonus,
                self.favorite_avoid_penalty,
                self.gf_confirmed_bonus,
                self.gf_flag_bonus,
                self.rating_midpoint,
                self.near_distance_m,
                self.menu_rescan_ttl_days,
                self.scan_workers,
                self.log_level,
            )
        )
