from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Dict, List, Optional, Set, TypedDict

from models import FavoriteStatus


class InteractionType(str, Enum):
    VIEW = "view"  # restaurant shown in a list or card
    DETAIL_OPEN = "detail_open"  # detail sheet opened


class InteractionRecord(TypedDict):
    views: int
    last_viewed: float
    detail_opens: int
    last_detail_open: float


class FavoriteStore:
    """In-memory per-user favorites and notes keyed by place id."""

    def __init__(self) -> None:
        self._statuses: Dict[str, FavoriteStatus] = {}
        self._notes: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def set_status(self, place_id: str, status: object) -> Optional[FavoriteStatus]:
        """Store a status; None or an unrecognised value clears it."""
        if not place_id:
            return None
        parsed = FavoriteStatus.parse(status)
        with self._lock:
            if parsed is None:
                self._statuses.pop(place_id, None)
            else:
                self._statuses[place_id] = parsed
        return parsed

    def clear(self, place_id: str) -> None:
        with self._lock:
            self._statuses.pop(place_id, None)

    def status(self, place_id: Optional[str]) -> Optional[FavoriteStatus]:
        if not place_id:
            return None
        with self._lock:
            return self._statuses.get(place_id)

    def snapshot(self) -> Dict[str, FavoriteStatus]:
        """Fully materialized lookup for the recommendation engine."""
        with self._lock:
            return dict(self._statuses)

    def add_note(self, place_id: str, text: Optional[str]) -> bool:
        note = (text or "").strip()
        if not place_id or not note:
            return False
        with self._lock:
            self._notes.setdefault(place_id, []).append(note)
        return True

    def notes(self, place_id: str) -> List[str]:
        with self._lock:
            return list(self._notes.get(place_id, []))

    def noted_place_ids(self) -> Set[str]:
        with self._lock:
            return {pid for pid, notes in self._notes.items() if notes}

    def reset(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._notes.clear()


class InteractionTracker:
    """Counts how often a user looked at each restaurant."""

    def __init__(self) -> None:
        self._records: Dict[str, InteractionRecord] = {}
        self._lock = threading.Lock()

    def record(self, place_id: str, kind: InteractionType = InteractionType.VIEW) -> None:
        if not place_id:
            return
        now = time.time()
        with self._lock:
            rec = self._records.setdefault(
                place_id, {"views": 0, "last_viewed": 0.0, "detail_opens": 0, "last_detail_open": 0.0}
            )
            if kind is InteractionType.VIEW:
                rec["views"] += 1
                rec["last_viewed"] = now
            else:
                rec["detail_opens"] += 1
                rec["last_detail_open"] = now

    def view_count(self, place_id: str) -> int:
        with self._lock:
            rec = self._records.get(place_id)
            return rec["views"] if rec else 0

    def detail_open_count(self, place_id: str) -> int:
        with self._lock:
            rec = self._records.get(place_id)
            return rec["detail_opens"] if rec else 0

    def view_counts(self) -> Dict[str, int]:
        with self._lock:
            return {pid: rec["views"] for pid, rec in self._records.items()}

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


# Global singletons
favorite_store = FavoriteStore()
interaction_tracker = InteractionTracker()
