"""Data models for the gluten-free recommender backend."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple


class MenuScanStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    FETCHING = "FETCHING"
    SUCCESS = "SUCCESS"
    NO_WEBSITE = "NO_WEBSITE"
    FAILED = "FAILED"


class FavoriteStatus(str, Enum):
    SAFE = "safe"
    TRY = "try"
    AVOID = "avoid"

    @classmethod
    def parse(cls, value: object) -> Optional["FavoriteStatus"]:
        """Return the status for a raw lookup value, or None when absent/unknown."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Restaurant:
    """Read-only snapshot of a restaurant as seen by the scoring core."""

    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    has_gf_menu: bool = False
    gluten_free_menu: Tuple[str, ...] = ()
    place_id: Optional[str] = None
    distance_meters: Optional[float] = None  # unknown when not supplied
    rating: Optional[float] = None
    open_now: Optional[bool] = None
    website: Optional[str] = None
    menu_scan_status: MenuScanStatus = MenuScanStatus.NOT_STARTED
    menu_scan_timestamp: int = 0  # epoch ms

    def __post_init__(self) -> None:
        # accept any iterable of names but store an immutable tuple
        if not isinstance(self.gluten_free_menu, tuple):
            object.__setattr__(self, "gluten_free_menu", tuple(self.gluten_free_menu or ()))

    def has_gluten_free_options(self) -> bool:
        return self.has_gf_menu or len(self.gluten_free_menu) > 0

    def has_confirmed_gf_menu(self) -> bool:
        return len(self.gluten_free_menu) > 0

    def with_scan(
        self,
        status: MenuScanStatus,
        timestamp: int,
        gluten_free_menu: Optional[Tuple[str, ...]] = None,
    ) -> "Restaurant":
        menu = self.gluten_free_menu if gluten_free_menu is None else tuple(gluten_free_menu)
        return replace(self, menu_scan_status=status, menu_scan_timestamp=timestamp, gluten_free_menu=menu)

    def cache_key(self) -> str:
        if self.place_id:
            return f"pid:{self.place_id}"
        return f"name:{self.name.strip().lower()}|{(self.address or '').strip().lower()}"


class RecommendationReason(Enum):
    # Declaration order is the display order of reason chips.
    HIGH_GF_OPTIONS = ("Good GF Options", "Restaurant has gluten-free options", "🍽️")
    NEARBY = ("Nearby", "Close to your current location", "📍")
    HIGHLY_RATED = ("Highly Rated", "Rated highly by other diners", "⭐")
    OPEN_NOW = ("Open Now", "Restaurant is currently open", "🟢")
    USER_FAVORITE = ("Marked Safe", "You marked this restaurant as safe for gluten-free", "✅")
    WANT_TO_TRY = ("Want to Try", "You're interested in trying this restaurant", "🔖")
    PREVIOUSLY_VISITED = ("Visited Before", "You've shown interest in this restaurant", "🔄")
    NEW_TO_YOU = ("New Discovery", "Similar to restaurants you like", "✨")

    def __init__(self, display_name: str, description: str, emoji: str) -> None:
        self.display_name = display_name
        self.description = description
        self.emoji = emoji


@dataclass(frozen=True)
class RecommendedRestaurant:
    restaurant: Restaurant
    score: float
    reasons: Tuple[RecommendationReason, ...] = ()
    reason: str = ""


class GFClassification(Enum):
    GF_SAFE = "GF Safe"
    LIKELY_GF = "Likely GF"
    MAY_CONTAIN_GLUTEN = "May Contain Gluten"
    NOT_GF = "Not Gluten-Free"
    UNCLEAR = "Unclear"

    @property
    def display_name(self) -> str:
        return self.value


class GFSafetyLevel(Enum):
    EXCELLENT = ("Excellent GF Options", "Restaurant has confirmed gluten-free options with high confidence")
    GOOD = ("Good GF Options", "Restaurant appears to have reliable gluten-free choices")
    LIMITED = ("Limited GF Options", "Restaurant has some gluten-free options but may be limited")
    POOR = ("Poor GF Options", "Very limited or uncertain gluten-free options")
    UNKNOWN = ("Unknown", "Unable to assess gluten-free options")

    def __init__(self, display_name: str, description: str) -> None:
        self.display_name = display_name
        self.description = description


class AnalysisSource(Enum):
    WEBSITE = "Restaurant Website"
    PHOTO = "Menu Photo"
    MANUAL = "Manual Entry"
    CACHED = "Cached Analysis"


class AnalyzerStatus(str, Enum):
    READY = "ready"
    DOWNLOADING = "downloading"
    NOT_AVAILABLE = "not_available"
    ERROR = "error"


@dataclass(frozen=True)
class AnalyzedMenuItem:
    name: str
    description: str
    classification: GFClassification
    confidence: float
    gf_keywords: Tuple[str, ...] = ()
    warning_keywords: Tuple[str, ...] = ()
    gluten_keywords: Tuple[str, ...] = ()
    reasoning: str = ""

    @property
    def keywords(self) -> Tuple[str, ...]:
        return self.gf_keywords + self.warning_keywords + self.gluten_keywords

    @property
    def is_gf_positive(self) -> bool:
        return self.classification in (GFClassification.GF_SAFE, GFClassification.LIKELY_GF)


@dataclass(frozen=True)
class AnalysisSummary:
    total_items: int
    gf_safe_count: int
    likely_gf_count: int
    warning_count: int
    confidence: float

    def safety_percentage(self) -> float:
        if self.total_items <= 0:
            return 0.0
        return (self.gf_safe_count + self.likely_gf_count) / self.total_items * 100.0


@dataclass(frozen=True)
class MenuAnalysisResult:
    safety_level: GFSafetyLevel
    analyzed_items: Tuple[AnalyzedMenuItem, ...]
    confidence: float
    reasoning: str
    source: AnalysisSource
    last_updated: int = 0  # epoch ms

    def summary(self) -> AnalysisSummary:
        items = self.analyzed_items
        return AnalysisSummary(
            total_items=len(items),
            gf_safe_count=sum(1 for i in items if i.classification is GFClassification.GF_SAFE),
            likely_gf_count=sum(1 for i in items if i.classification is GFClassification.LIKELY_GF),
            warning_count=sum(1 for i in items if i.classification is GFClassification.MAY_CONTAIN_GLUTEN),
            confidence=self.confidence,
        )

    def gluten_free_item_names(self) -> Tuple[str, ...]:
        return tuple(item.name for item in self.analyzed_items if item.is_gf_positive)
