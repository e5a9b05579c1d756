from __future__ import annotations

import sys
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import (
    AnalysisSource,
    AnalyzedMenuItem,
    MenuAnalysisResult,
    MenuScanStatus,
    RecommendedRestaurant,
    Restaurant,
)
from services.favorites import favorite_store, interaction_tracker, InteractionType
from services.menu_analysis import AnalyzerNotReadyError, MenuAnalyzer
from services.menu_scan import MenuScanner
from services.recommendation import RecommendationEngine
from services.report import build_menu_report, build_report
from utils import haversine_m, name_suggests_gluten_free


load_dotenv()


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.strip().upper() or "INFO")


_configure_logging(Configuration.from_env().log_level)

app = FastAPI(title="Gluten-Free Restaurant Recommender")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_analyzer: Optional[MenuAnalyzer] = None
_scanner: Optional[MenuScanner] = None


def get_analyzer() -> MenuAnalyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = MenuAnalyzer(Configuration.from_env())
    return _analyzer


def get_scanner() -> MenuScanner:
    global _scanner
    if _scanner is None:
        _scanner = MenuScanner(Configuration.from_env(), get_analyzer())
    return _scanner


class RestaurantPayload(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    place_id: Optional[str] = None
    has_gf_menu: Optional[bool] = Field(None, description="Heuristic flag; derived from the name when omitted")
    gluten_free_menu: List[str] = []
    distance_meters: Optional[float] = Field(None, ge=0.0)
    rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    open_now: Optional[bool] = None
    website: Optional[str] = None
    menu_scan_status: MenuScanStatus = MenuScanStatus.NOT_STARTED
    menu_scan_timestamp: int = 0

    def to_restaurant(self, user_lat: Optional[float], user_lon: Optional[float]) -> Restaurant:
        distance = self.distance_meters
        if distance is None and user_lat is not None and user_lon is not None:
            distance = haversine_m(user_lat, user_lon, self.latitude, self.longitude)
        flag = self.has_gf_menu if self.has_gf_menu is not None else name_suggests_gluten_free(self.name)
        return Restaurant(
            name=self.name,
            address=self.address,
            latitude=self.latitude,
            longitude=self.longitude,
            has_gf_menu=flag,
            gluten_free_menu=tuple(self.gluten_free_menu),
            place_id=self.place_id,
            distance_meters=distance,
            rating=self.rating,
            open_now=self.open_now,
            website=self.website,
            menu_scan_status=self.menu_scan_status,
            menu_scan_timestamp=self.menu_scan_timestamp,
        )


class RecommendRequest(BaseModel):
    restaurants: List[RestaurantPayload] = []
    favorites: Dict[str, str] = Field(default_factory=dict, description="place_id -> safe|try|avoid")
    view_counts: Optional[Dict[str, int]] = None
    noted_place_ids: List[str] = []
    limit: Optional[int] = Field(None, ge=1, le=100)
    user_lat: Optional[float] = Field(None, description="Used when a restaurant has no distance")
    user_lon: Optional[float] = None


class RecommendedPayload(BaseModel):
    name: str
    place_id: Optional[str]
    address: Optional[str]
    score: float
    reason: str
    reasons: List[str]
    distance_meters: Optional[float]
    rating: Optional[float]
    open_now: Optional[bool]
    has_gluten_free_options: bool


class RecommendResponse(BaseModel):
    recommendations_markdown: str
    recommendations: List[RecommendedPayload]
    total_candidates: int


class FavoriteUpdate(BaseModel):
    status: str = Field(..., description="safe | try | avoid")


class InteractionUpdate(BaseModel):
    kind: InteractionType = InteractionType.VIEW


class AnalyzeRequest(BaseModel):
    menu_text: str = ""
    restaurant_name: str = ""
    source: str = Field("WEBSITE", description="WEBSITE | PHOTO | MANUAL | CACHED")


class AnalyzedItemPayload(BaseModel):
    name: str
    description: str
    classification: str
    confidence: float
    keywords: List[str]
    warnings: List[str]
    reasoning: str


class AnalyzeResponse(BaseModel):
    safety_level: str
    confidence: float
    reasoning: str
    source: str
    last_updated: int
    safety_percentage: float
    gluten_free_items: List[str]
    items: List[AnalyzedItemPayload]
    report_markdown: str


def _to_recommended_payload(rec: RecommendedRestaurant) -> RecommendedPayload:
    r = rec.restaurant
    return RecommendedPayload(
        name=r.name,
        place_id=r.place_id,
        address=r.address,
        score=rec.score,
        reason=rec.reason,
        reasons=[reason.name for reason in rec.reasons],
        distance_meters=r.distance_meters,
        rating=r.rating,
        open_now=r.open_now,
        has_gluten_free_options=r.has_gluten_free_options(),
    )


def _to_item_payload(item: AnalyzedMenuItem) -> AnalyzedItemPayload:
    return AnalyzedItemPayload(
        name=item.name,
        description=item.description,
        classification=item.classification.name,
        confidence=item.confidence,
        keywords=list(item.keywords),
        warnings=list(item.warning_keywords),
        reasoning=item.reasoning,
    )


def _to_analyze_response(result: MenuAnalysisResult, restaurant_name: str) -> AnalyzeResponse:
    return AnalyzeResponse(
        safety_level=result.safety_level.name,
        confidence=result.confidence,
        reasoning=result.reasoning,
        source=result.source.name,
        last_updated=result.last_updated,
        safety_percentage=result.summary().safety_percentage(),
        gluten_free_items=list(result.gluten_free_item_names()),
        items=[_to_item_payload(i) for i in result.analyzed_items],
        report_markdown=build_menu_report(result, restaurant_name),
    )


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.post("/recommendations", response_model=RecommendResponse)
def recommend(req: RecommendRequest) -> RecommendResponse:
    try:
        cfg = Configuration.from_env()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        restaurants = [p.to_restaurant(req.user_lat, req.user_lon) for p in req.restaurants]
        favorites: Dict[str, object] = dict(favorite_store.snapshot())
        favorites.update(req.favorites)
        noted = set(req.noted_place_ids) | favorite_store.noted_place_ids()
        view_counts = req.view_counts if req.view_counts is not None else interaction_tracker.view_counts()

        engine = RecommendationEngine(cfg)
        ranked = engine.top_n(
            restaurants,
            favorites,
            req.limit or cfg.default_top_n,
            view_counts=view_counts,
            noted_place_ids=noted,
        )
        md = build_report(ranked, limit=len(ranked))
        logger.info("recommendation candidates={} returned={}", len(restaurants), len(ranked))
    except Exception as exc:
        logger.exception("recommendation failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return RecommendResponse(
        recommendations_markdown=md,
        recommendations=[_to_recommended_payload(r) for r in ranked],
        total_candidates=len(restaurants),
    )


@app.put("/favorites/{place_id}")
def set_favorite(place_id: str, body: FavoriteUpdate) -> dict:
    status = favorite_store.set_status(place_id, body.status)
    if status is None:
        raise HTTPException(status_code=400, detail=f"unknown favorite status: {body.status}")
    return {"place_id": place_id, "status": status.value}


@app.delete("/favorites/{place_id}")
def clear_favorite(place_id: str) -> dict:
    favorite_store.clear(place_id)
    return {"place_id": place_id, "status": None}


class NoteUpdate(BaseModel):
    text: str = ""


@app.post("/notes/{place_id}")
def add_note(place_id: str, body: NoteUpdate) -> dict:
    if not favorite_store.add_note(place_id, body.text):
        raise HTTPException(status_code=400, detail="note text is empty")
    return {"place_id": place_id, "notes": favorite_store.notes(place_id)}


@app.post("/interactions/{place_id}")
def record_interaction(place_id: str, body: InteractionUpdate) -> dict:
    interaction_tracker.record(place_id, body.kind)
    return {"place_id": place_id, "views": interaction_tracker.view_count(place_id)}


@app.get("/menu/status")
def menu_status() -> dict:
    analyzer = get_analyzer()
    return {"status": analyzer.status().value, "error": analyzer.last_error}


@app.post("/menu/analyze", response_model=AnalyzeResponse)
def analyze_menu(req: AnalyzeRequest) -> AnalyzeResponse:
    try:
        source = AnalysisSource[req.source.strip().upper()]
    except KeyError:
        raise HTTPException(status_code=400, detail=f"unknown source: {req.source}")

    analyzer = get_analyzer()
    try:
        result = analyzer.analyze(req.menu_text, req.restaurant_name, source)
    except AnalyzerNotReadyError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except Exception as exc:
        logger.exception("menu analysis failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return _to_analyze_response(result, req.restaurant_name)


class ScanResponse(BaseModel):
    menu_scan_status: str
    menu_scan_timestamp: int
    gluten_free_menu: List[str]
    has_gluten_free_options: bool
    error: Optional[str] = None
    analysis: Optional[AnalyzeResponse] = None


@app.post("/menu/scan", response_model=ScanResponse)
def scan_menu(payload: RestaurantPayload) -> ScanResponse:
    restaurant = payload.to_restaurant(None, None)
    scanner = get_scanner()
    if not scanner.needs_rescan(restaurant):
        return ScanResponse(
            menu_scan_status=restaurant.menu_scan_status.value,
            menu_scan_timestamp=restaurant.menu_scan_timestamp,
            gluten_free_menu=list(restaurant.gluten_free_menu),
            has_gluten_free_options=restaurant.has_gluten_free_options(),
        )
    try:
        outcome = scanner.scan(restaurant)
    except AnalyzerNotReadyError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    updated = outcome.restaurant
    return ScanResponse(
        menu_scan_status=updated.menu_scan_status.value,
        menu_scan_timestamp=updated.menu_scan_timestamp,
        gluten_free_menu=list(updated.gluten_free_menu),
        has_gluten_free_options=updated.has_gluten_free_options(),
        error=outcome.error,
        analysis=_to_analyze_response(outcome.result, updated.name) if outcome.result else None,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
