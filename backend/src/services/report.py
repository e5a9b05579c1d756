from __future__ import annotations

import math
from typing import List

from models import GFClassification, MenuAnalysisResult, RecommendedRestaurant

M_TO_MILES = 0.000621371

_CLASSIFICATION_ICONS = {
    GFClassification.GF_SAFE: "✅",
    GFClassification.LIKELY_GF: "🟡",
    GFClassification.MAY_CONTAIN_GLUTEN: "⚠️",
    GFClassification.NOT_GF: "❌",
    GFClassification.UNCLEAR: "❓",
}


def build_report(ranked: List[RecommendedRestaurant], limit: int = 5) -> str:
    lines = [
        "## Gluten-Free Recommendations",
        "",
        f"- Restaurants considered: {len(ranked)}",
        "",
        "> Note: menus and kitchen practices change. Confirm gluten-free handling with the restaurant.",
        "",
    ]

    if not ranked:
        lines.append("No restaurants to recommend yet.")
        return "\n".join(lines)

    lines.append("### Top Picks")
    for idx, rec in enumerate(ranked[: max(0, limit)], start=1):
        r = rec.restaurant
        tags = ", ".join(f"{reason.emoji} {reason.display_name}" for reason in rec.reasons) or "None"
        if r.has_confirmed_gf_menu():
            evidence = "GF menu items: " + ", ".join(r.gluten_free_menu[:4])
        elif r.has_gf_menu:
            evidence = "GF options suggested by name"
        else:
            evidence = "No gluten-free evidence yet"
        rating = f"{r.rating:.1f}/5" if r.rating is not None else "Not rated"
        if r.distance_meters is None or math.isnan(r.distance_meters):
            distance = "- Distance unknown"
        else:
            distance = f"- Distance: {r.distance_meters * M_TO_MILES:.1f} miles ({r.distance_meters / 1000.0:.1f} km)"
        if r.open_now is True:
            hours = "Open now"
        elif r.open_now is False:
            hours = "Closed"
        else:
            hours = "Hours unknown"
        lines += [
            f"#### {idx}. {r.name}",
            f"- Address: {r.address or 'Not provided'}",
            f"- Score: {rec.score:.1f}",
            f"- Why: {rec.reason}",
            f"- Tags: {tags}",
            distance,
            f"- Rating: {rating}",
            f"- Hours: {hours}",
            f"- Evidence: {evidence}",
            "",
        ]

    return "\n".join(lines)


def build_menu_report(result: MenuAnalysisResult, restaurant_name: str) -> str:
    summary = result.summary()
    lines = [
        f"## Menu Analysis: {restaurant_name}",
        "",
        f"- Safety level: {result.safety_level.display_name}",
        f"- Confidence: {result.confidence:.0%}",
        f"- Items analyzed: {summary.total_items}",
        f"- GF safe: {summary.gf_safe_count} | Likely GF: {summary.likely_gf_count} | May contain gluten: {summary.warning_count}",
        f"- Source: {result.source.value}",
        "",
        result.reasoning,
        "",
    ]
    if result.analyzed_items:
        lines.append("### Items")
    for item in result.analyzed_items:
        icon = _CLASSIFICATION_ICONS.get(item.classification, "")
        detail = f" ({', '.join(item.keywords)})" if item.keywords else ""
        lines.append(f"- {icon} {item.name}: {item.classification.display_name}{detail}")
    return "\n".join(lines)
