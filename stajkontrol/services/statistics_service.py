"""Dashboard statistics, cached in Redis."""

import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stajkontrol.config import settings
from stajkontrol.core.cache import CacheManager
from stajkontrol.core.security import Role
from stajkontrol.models import (
    Application,
    ApplicationStatus,
    InternshipType,
    Logbook,
    LogbookStatus,
    User,
)
from stajkontrol.utils.helpers import utcnow

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "stats:admin"


class StatisticsService:
    def __init__(self, db: AsyncSession, cache_manager: Optional[CacheManager] = None):
        self.db = db
        self.cache_manager = cache_manager

    async def _count_by(self, column, enum_cls) -> Dict[str, int]:
        counts = {member.value: 0 for member in enum_cls}
        result = await self.db.execute(select(column, func.count()).group_by(column))
        for value, count in result.all():
            counts[enum_cls(value).value] = count
        return counts

    async def compute(self) -> Dict[str, Any]:
        return {
            "users": await self._count_by(User.role, Role),
            "applications": await self._count_by(Application.status, ApplicationStatus),
            "logbooks": await self._count_by(Logbook.status, LogbookStatus),
            "internship_types": await self._count_by(Application.internship_type, InternshipType),
            "generated_at": utcnow().isoformat(),
        }

    async def get_statistics(self) -> Dict[str, Any]:
        """Statistics from cache, recomputed on miss or when Redis is down."""
        if self.cache_manager is not None:
            try:
                cached = self.cache_manager.get(STATS_CACHE_KEY)
            except RedisError as e:
                logger.warning(f"Statistics cache unavailable: {e}")
                cached = None
            if cached is not None:
                return cached

        stats = await self.compute()

        if self.cache_manager is not None:
            try:
                self.cache_manager.set(STATS_CACHE_KEY, stats, ttl=settings.CACHE_STATS_TTL)
            except RedisError as e:
                logger.warning(f"Could not cache statistics: {e}")
        return stats
