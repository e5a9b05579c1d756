"""Rule-based gluten-free menu classifier.

Turns raw menu text into per-item classifications and a restaurant-level
safety verdict. Pure computation apart from the optional translation hook,
which must be prepared before ``analyze`` is called.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Tuple

from loguru import logger

from config import Configuration
from models import (
    AnalysisSource,
    AnalyzedMenuItem,
    AnalyzerStatus,
    GFClassification,
    GFSafetyLevel,
    MenuAnalysisResult,
)
from services.menu_keywords import ITEM_REASONING, KeywordCategory, classify_scores, match_rules, score_rules
from utils import now_ms


MAX_NAME_LEN = 100
MIN_LINE_LEN = 5
MAX_LINE_LEN = 100
NO_MATCH_CONFIDENCE = 0.3

_DASHES = re.compile(r"[^\S\n]*[‒–—―][^\S\n]*")
_LINE_BREAK_RUN = re.compile(r"\s*\n\s*")
_SPACE_RUN = re.compile(r"[^\S\n]+")
_DISALLOWED = re.compile(r"[^\w\s.,;:()&%-]")
_SENTENCE_END = re.compile(r"\n|\.(?=\s|$)")
_NAME_SEPARATOR = re.compile(r" - |:")


class AnalyzerNotReadyError(RuntimeError):
    """Raised when analysis is requested before its resources are prepared."""


def preprocess_menu_text(text: str) -> str:
    text = _DASHES.sub(" - ", text or "")
    text = _LINE_BREAK_RUN.sub("\n", text)
    text = _SPACE_RUN.sub(" ", text)
    text = _DISALLOWED.sub("", text)
    return text.strip()


def extract_menu_items(text: str) -> List[Tuple[str, str]]:
    """Split cleaned menu text into (name, description) candidates."""
    items: list[tuple[str, str]] = []
    lines = [line.strip() for line in _SENTENCE_END.split(text)]
    for line in lines:
        if not line:
            continue
        parts = _NAME_SEPARATOR.split(line)
        if len(parts) >= 2:
            name = parts[0].strip()
            description = " - ".join(p.strip() for p in parts[1:]).strip()
            if name and len(name) <= MAX_NAME_LEN:
                items.append((name, description))
        elif MIN_LINE_LEN <= len(line) <= MAX_LINE_LEN:
            items.append((line, ""))
    return items


def analyze_menu_item(name: str, description: str) -> AnalyzedMenuItem:
    full_text = f"{name} {description}".lower()
    matched = match_rules(full_text)
    scores = score_rules(matched)
    classification = classify_scores(scores)

    if scores.total > 0:
        confidence = min(1.0, scores.total / 10.0)
    else:
        confidence = NO_MATCH_CONFIDENCE

    def _of(category: KeywordCategory) -> tuple[str, ...]:
        return tuple(rule.keyword for rule in matched if rule.category is category)

    return AnalyzedMenuItem(
        name=name,
        description=description,
        classification=classification,
        confidence=confidence,
        gf_keywords=_of(KeywordCategory.GF_POSITIVE),
        warning_keywords=_of(KeywordCategory.WARNING),
        gluten_keywords=_of(KeywordCategory.GLUTEN),
        reasoning=ITEM_REASONING[classification],
    )


def overall_safety_level(items: List[AnalyzedMenuItem]) -> GFSafetyLevel:
    if not items:
        return GFSafetyLevel.UNKNOWN

    safe = sum(1 for i in items if i.is_gf_positive)
    warnings = sum(
        1 for i in items if i.classification in (GFClassification.MAY_CONTAIN_GLUTEN, GFClassification.NOT_GF)
    )
    safe_percentage = safe / len(items)

    if safe_percentage >= 0.8 and warnings == 0:
        return GFSafetyLevel.EXCELLENT
    if safe_percentage >= 0.6:
        return GFSafetyLevel.GOOD
    if safe_percentage >= 0.3:
        return GFSafetyLevel.LIMITED
    if safe_percentage >= 0.1:
        return GFSafetyLevel.POOR
    return GFSafetyLevel.UNKNOWN


def overall_confidence(items: List[AnalyzedMenuItem]) -> float:
    if not items:
        return 0.0
    return sum(i.confidence for i in items) / len(items)


def build_reasoning(items: List[AnalyzedMenuItem], restaurant_name: str) -> str:
    safe_count = sum(1 for i in items if i.classification is GFClassification.GF_SAFE)
    likely_count = sum(1 for i in items if i.classification is GFClassification.LIKELY_GF)
    warning_count = sum(1 for i in items if i.classification is GFClassification.MAY_CONTAIN_GLUTEN)

    parts = [
        f"Analysis of {restaurant_name or 'this restaurant'} menu found ",
        f"{safe_count} confirmed gluten-free items ",
        f"and {likely_count} likely gluten-free options. ",
    ]
    if warning_count > 0:
        parts.append(f"Note: {warning_count} items may contain gluten. ")
    parts.append("This assessment is based on menu descriptions and may not reflect current kitchen practices.")
    return "".join(parts)


class MenuAnalyzer:
    """Keyword classifier with an explicit readiness gate.

    ``preparer`` downloads whatever the analyzer needs (translation models)
    and ``readiness`` reports whether those resources are available.
    ``translator`` converts menu text to the classifier's language. With no
    preparer and no readiness probe the analyzer is ready immediately.
    """

    def __init__(
        self,
        cfg: Configuration,
        *,
        translator: Optional[Callable[[str], str]] = None,
        readiness: Optional[Callable[[], bool]] = None,
        preparer: Optional[Callable[[], None]] = None,
    ) -> None:
        self.cfg = cfg
        self.translator = translator
        self._readiness = readiness
        self._preparer = preparer
        self._status = AnalyzerStatus.READY if preparer is None else AnalyzerStatus.NOT_AVAILABLE
        self._last_error: Optional[str] = None

    def is_ready(self) -> bool:
        if self._readiness is not None:
            return bool(self._readiness())
        return self._status is AnalyzerStatus.READY

    def status(self) -> AnalyzerStatus:
        if self._status in (AnalyzerStatus.DOWNLOADING, AnalyzerStatus.ERROR):
            return self._status
        return AnalyzerStatus.READY if self.is_ready() else AnalyzerStatus.NOT_AVAILABLE

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def prepare(self) -> AnalyzerStatus:
        """Run the resource preparation hook (e.g. model download)."""
        if self._preparer is None:
            return self.status()
        self._status = AnalyzerStatus.DOWNLOADING
        try:
            self._preparer()
        except Exception as exc:
            logger.warning("menu analyzer preparation failed: {}", exc)
            self._status = AnalyzerStatus.ERROR
            self._last_error = str(exc)
            return self._status
        self._status = AnalyzerStatus.READY
        self._last_error = None
        return self.status()

    def analyze(
        self,
        menu_text: str,
        restaurant_name: str,
        source: AnalysisSource = AnalysisSource.WEBSITE,
    ) -> MenuAnalysisResult:
        if not self.is_ready():
            raise AnalyzerNotReadyError("menu analysis resources are not ready")

        text = menu_text or ""
        if len(text) > self.cfg.menu_max_chars:
            logger.warning(
                "menu text for {} truncated from {} to {} chars", restaurant_name, len(text), self.cfg.menu_max_chars
            )
            text = text[: self.cfg.menu_max_chars]
        if self.translator is not None and text.strip():
            text = self.translator(text)

        cleaned = preprocess_menu_text(text)
        analyzed = [analyze_menu_item(name, desc) for name, desc in extract_menu_items(cleaned)]

        result = MenuAnalysisResult(
            safety_level=overall_safety_level(analyzed),
            analyzed_items=tuple(analyzed),
            confidence=overall_confidence(analyzed),
            reasoning=build_reasoning(analyzed, restaurant_name),
            source=source,
            last_updated=now_ms(),
        )
        logger.debug(
            "menu analysis restaurant={} items={} level={} confidence={:.2f}",
            restaurant_name,
            len(analyzed),
            result.safety_level.name,
            result.confidence,
        )
        return result
