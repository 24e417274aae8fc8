"""
Support Group Catalog

TTL-cached view of the support groups authorized to close contract
tickets. The cache is refreshed lazily on the first lookup after expiry.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.cache import SnapshotCache
from contract_sla.core.clock import utcnow
from contract_sla.core.config import settings
from contract_sla.models.support_group import SupportGroup
from contract_sla.schemas.violation import SupportGroupEntry
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector


logger = logging.getLogger(__name__)

CACHE_NAME = "support_groups"


class SupportGroupCatalog:
    """
    Lookup of support groups by assignment group sys_id.

    Args:
        session_factory: Callable returning a new AsyncSession
        ttl: Cache time-to-live
        metrics: Collector for cache refresh counters
        clock: Naive UTC clock, injectable for tests
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        ttl: timedelta = timedelta(minutes=settings.SUPPORT_GROUP_CACHE_TTL_MINUTES),
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self._session_factory = session_factory
        self._metrics = metrics or metrics_collector
        self._cache: SnapshotCache[str, SupportGroupEntry] = SnapshotCache(
            CACHE_NAME, self._load, ttl=ttl, clock=clock
        )

    async def _load(self) -> Dict[str, SupportGroupEntry]:
        async with self._session_factory() as session:
            result = await session.execute(select(SupportGroup))
            groups = result.scalars().all()

        return {
            str(group.id): SupportGroupEntry(
                id=str(group.id),
                name=group.name or "",
                tags=list(group.tags or []),
                description=group.description or "",
                owner=group.owner or "",
                temperature=group.temperature or 0.0
            )
            for group in groups
        }

    async def refresh(self) -> int:
        """
        Reload all support groups. Errors propagate.

        Returns:
            Number of cached groups
        """
        try:
            snapshot = await self._cache.refresh()
        except Exception:
            self._metrics.record_cache_refresh(CACHE_NAME, success=False)
            raise

        self._metrics.record_cache_refresh(CACHE_NAME, success=True)
        logger.info(f"Support groups cache refreshed: {len(snapshot.entries)} groups loaded")
        return len(snapshot.entries)

    async def get_group(self, group_id: str) -> Optional[SupportGroupEntry]:
        """
        Look up a group, refreshing the cache first when it has expired.

        A failed refresh is logged and the previous snapshot is used; the
        refresh is retried on the next lookup.
        """
        if self._cache.is_stale():
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Error refreshing support groups cache: {e}", exc_info=True)
        return self._cache.get(group_id)

    def get_cache_stats(self) -> Dict:
        return self._cache.stats()

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(select(SupportGroup.id).limit(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Support group catalog health check failed: {e}", exc_info=True)
            return False
