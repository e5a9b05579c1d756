"""Utility helpers for the gluten-free recommender backend."""

from __future__ import annotations

import math
import re
import time
from typing import Optional


# Name fragments that suggest a dedicated or GF-friendly kitchen.
GF_NAME_PATTERN = re.compile(r"gluten[\s-]?free|\bgf\b|celiac|coeliac|sans gluten|senza glutine", re.IGNORECASE)


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def name_suggests_gluten_free(name: Optional[str]) -> bool:
    """Heuristic GF flag derived from the restaurant name."""
    if not name:
        return False
    return bool(GF_NAME_PATTERN.search(name))


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    R = 6371000.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c
