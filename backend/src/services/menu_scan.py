"""Menu scan lifecycle: decide when to rescan, fetch, analyse, update evidence."""

from __future__ import annotations

import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from config import Configuration
from models import AnalysisSource, MenuAnalysisResult, MenuScanStatus, Restaurant
from services.menu_analysis import MenuAnalyzer
from services.menu_fetcher import MenuFetchError, MenuFetcher
from utils import now_ms


@dataclass(frozen=True)
class ScanOutcome:
    restaurant: Restaurant
    result: Optional[MenuAnalysisResult] = None
    error: Optional[str] = None


class AnalysisCache:
    """LRU cache of analysis results with a time-to-live in epoch ms."""

    def __init__(self, ttl_ms: int, max_entries: int = 128) -> None:
        self.ttl_ms = ttl_ms
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, Tuple[int, MenuAnalysisResult]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, now: Optional[int] = None) -> Optional[MenuAnalysisResult]:
        now = now_ms() if now is None else now
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            ts, value = entry
            if now - ts >= self.ttl_ms:
                self._entries.pop(key, None)
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: MenuAnalysisResult, now: Optional[int] = None) -> None:
        now = now_ms() if now is None else now
        with self._lock:
            if key in self._entries:
                self._entries.pop(key)
            elif len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[key] = (now, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class MenuScanner:
    def __init__(
        self,
        cfg: Configuration,
        analyzer: MenuAnalyzer,
        fetcher: Optional[MenuFetcher] = None,
        cache: Optional[AnalysisCache] = None,
    ) -> None:
        self.cfg = cfg
        self.analyzer = analyzer
        self.fetcher = fetcher or MenuFetcher(cfg)
        self.cache = cache if cache is not None else AnalysisCache(cfg.menu_rescan_ttl_ms, cfg.analysis_cache_max)

    def needs_rescan(self, restaurant: Restaurant, now: Optional[int] = None) -> bool:
        status = restaurant.menu_scan_status
        if status is MenuScanStatus.NOT_STARTED:
            return True
        now = now_ms() if now is None else now
        # an in-flight scan older than the TTL is treated as abandoned
        return now - restaurant.menu_scan_timestamp >= self.cfg.menu_rescan_ttl_ms

    def scan(self, restaurant: Restaurant, now: Optional[int] = None) -> ScanOutcome:
        """Scan one restaurant's website menu.

        Fetch failures end in FAILED and never raise; an analyzer that is not
        ready raises AnalyzerNotReadyError to the caller.
        """
        now = now_ms() if now is None else now
        key = restaurant.cache_key()

        cached = self.cache.get(key, now)
        if cached is not None:
            logger.debug("menu scan cache hit {}", key)
            return ScanOutcome(
                restaurant=self._apply(restaurant, cached, now),
                result=replace(cached, source=AnalysisSource.CACHED),
            )

        if not restaurant.website:
            return ScanOutcome(restaurant=restaurant.with_scan(MenuScanStatus.NO_WEBSITE, now))

        try:
            text = self.fetcher.fetch_text(restaurant.website)
        except MenuFetchError as exc:
            logger.warning("menu fetch failed for {}: {}", restaurant.name, exc)
            return ScanOutcome(restaurant=restaurant.with_scan(MenuScanStatus.FAILED, now), error=str(exc))

        result = self.analyzer.analyze(text, restaurant.name, AnalysisSource.WEBSITE)
        self.cache.set(key, result, now)
        logger.info(
            "menu scan {} level={} gf_items={}",
            restaurant.name,
            result.safety_level.name,
            len(result.gluten_free_item_names()),
        )
        return ScanOutcome(restaurant=self._apply(restaurant, result, now), result=result)

    def scan_all(self, restaurants: Sequence[Restaurant], now: Optional[int] = None) -> List[ScanOutcome]:
        """Scan the restaurants whose scan is due; output keeps input order."""
        now = now_ms() if now is None else now
        outcomes: List[Optional[ScanOutcome]] = [None] * len(restaurants)
        due: list[int] = []
        for idx, r in enumerate(restaurants):
            if self.needs_rescan(r, now):
                due.append(idx)
            else:
                outcomes[idx] = ScanOutcome(restaurant=r)

        if due:
            workers = min(self.cfg.scan_workers, len(due))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                future_map = {executor.submit(self.scan, restaurants[idx], now): idx for idx in due}
                for future in as_completed(future_map):
                    outcomes[future_map[future]] = future.result()

        return [o for o in outcomes if o is not None]

    @staticmethod
    def _apply(restaurant: Restaurant, result: MenuAnalysisResult, now: int) -> Restaurant:
        names = result.gluten_free_item_names()
        return restaurant.with_scan(MenuScanStatus.SUCCESS, now, names if names else None)
