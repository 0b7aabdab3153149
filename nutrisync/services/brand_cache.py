"""Time-bounded memo of successful brand searches, shared across requests."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from nutrisync.config import settings
from nutrisync.models.analysis import AnalysisTool
from nutrisync.models.nutrition import NutritionEstimate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BrandCacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    estimate: NutritionEstimate
    tools_used: list[AnalysisTool]
    inserted_at: datetime


class BrandCache:
    """
    Key -> brand search result, expiring lazily on read.

    All access goes through an asyncio.Lock; entries are immutable so a
    returned entry can be used after the lock is released.
    """

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ttl = ttl if ttl is not None else timedelta(days=settings.brand_cache_ttl_days)
        self._clock = clock or _utcnow
        self._entries: dict[str, BrandCacheEntry] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def make_key(brand: str, meal_name: str) -> str:
        """Cache key as brand and meal name joined verbatim (no normalization)."""
        return f"{brand}_{meal_name}"

    async def get(self, key: str) -> Optional[BrandCacheEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.inserted_at >= self.ttl:
                logger.info("Brand cache entry expired: %s", key)
                del self._entries[key]
                return None
            return entry

    async def put(
        self, key: str, estimate: NutritionEstimate, tools_used: list[AnalysisTool]
    ) -> BrandCacheEntry:
        entry = BrandCacheEntry(
            key=key,
            estimate=estimate,
            tools_used=list(tools_used),
            inserted_at=self._clock(),
        )
        async with self._lock:
            self._entries[key] = entry
        logger.info("Cached brand result: %s", key)
        return entry

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
