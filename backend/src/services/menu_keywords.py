from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple

from models import GFClassification


class KeywordCategory(str, Enum):
    GF_POSITIVE = "gf_positive"
    WARNING = "warning"
    GLUTEN = "gluten"


@dataclass(frozen=True)
class KeywordRule:
    keyword: str
    weight: int
    category: KeywordCategory


def _rules(category: KeywordCategory, weight: int, keywords: List[str]) -> List[KeywordRule]:
    return [KeywordRule(kw, weight, category) for kw in keywords]


KEYWORD_RULES: Tuple[KeywordRule, ...] = tuple(
    _rules(
        KeywordCategory.GF_POSITIVE,
        2,
        ["gluten-free", "gf", "gluten free", "celiac", "celiac-safe", "no gluten"],
    )
    + _rules(KeywordCategory.GF_POSITIVE, 3, ["100% gluten-free", "dedicated gluten-free"])
    + _rules(
        KeywordCategory.WARNING,
        2,
        [
            "may contain",
            "processed in",
            "shared",
            "cross-contamination",
            "same facility",
            "shared kitchen",
            "shared equipment",
        ],
    )
    + _rules(
        KeywordCategory.GLUTEN,
        3,
        ["wheat", "barley", "rye", "malt", "semolina", "farro", "bulgur", "couscous", "panko", "seitan"],
    )
)


@dataclass(frozen=True)
class KeywordScores:
    gf: int = 0
    warning: int = 0
    gluten: int = 0

    @property
    def total(self) -> int:
        return self.gf + self.warning + self.gluten


# Evaluated top to bottom; the first matching predicate wins.
CLASSIFICATION_TABLE: Tuple[Tuple[Callable[[KeywordScores], bool], GFClassification], ...] = (
    (lambda s: s.gf >= 3 and s.warning == 0, GFClassification.GF_SAFE),
    (lambda s: s.gf >= 2 and s.warning <= 1, GFClassification.LIKELY_GF),
    (lambda s: s.warning >= 2 or s.gluten >= 2, GFClassification.MAY_CONTAIN_GLUTEN),
    (lambda s: s.gluten >= 3, GFClassification.NOT_GF),
)

ITEM_REASONING: Dict[GFClassification, str] = {
    GFClassification.GF_SAFE: "Contains explicit gluten-free designation or dedicated preparation area",
    GFClassification.LIKELY_GF: "Menu description suggests gluten-free preparation or ingredients",
    GFClassification.MAY_CONTAIN_GLUTEN: "Contains potential gluten-containing ingredients or shared preparation",
    GFClassification.NOT_GF: "Contains confirmed gluten-containing ingredients",
    GFClassification.UNCLEAR: "Insufficient information to determine gluten-free status",
}


def _compile(keyword: str) -> "re.Pattern[str]":
    # short tokens such as "gf" only count as whole words
    if len(keyword) <= 3:
        return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)")
    return re.compile(re.escape(keyword))


_PATTERNS: Tuple[Tuple[KeywordRule, "re.Pattern[str]"], ...] = tuple((rule, _compile(rule.keyword)) for rule in KEYWORD_RULES)


def match_rules(text: str) -> List[KeywordRule]:
    """Return the rules whose keyword occurs in the lower-cased text, in table order."""
    lower = text.lower()
    return [rule for rule, pattern in _PATTERNS if pattern.search(lower)]


def score_rules(matched: List[KeywordRule]) -> KeywordScores:
    totals = {category: 0 for category in KeywordCategory}
    for rule in matched:
        totals[rule.category] += rule.weight
    return KeywordScores(
        gf=totals[KeywordCategory.GF_POSITIVE],
        warning=totals[KeywordCategory.WARNING],
        gluten=totals[KeywordCategory.GLUTEN],
    )


def classify_scores(scores: KeywordScores) -> GFClassification:
    for predicate, classification in CLASSIFICATION_TABLE:
        if predicate(scores):
            return classification
    return GFClassification.UNCLEAR
