"""
SLA Configuration Store

Cached read access to the contractual SLA table. The whole table is held
in memory and only reloaded on an explicit refresh.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union
import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.cache import SnapshotCache
from contract_sla.core.clock import utcnow
from contract_sla.models.sla import ContractualSla, TicketType, MetricType, SlaPriority
from contract_sla.schemas.sla import SlaConfiguration, SlaStatistics
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector
from contract_sla.services.priority_mapping import parse_ticket_type


logger = logging.getLogger(__name__)

SlaKey = Tuple[TicketType, MetricType, SlaPriority]

CACHE_NAME = "contractual_slas"


class SlaConfigurationStore:
    """
    Lookup of contractual SLA thresholds by (ticket type, metric, priority).

    Args:
        session_factory: Callable returning a new AsyncSession
        metrics: Collector for cache refresh counters
        clock: Naive UTC clock, injectable for tests
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self._session_factory = session_factory
        self._metrics = metrics or metrics_collector
        self._cache: SnapshotCache[SlaKey, SlaConfiguration] = SnapshotCache(
            CACHE_NAME, self._load, ttl=None, clock=clock
        )

    async def _load(self) -> Dict[SlaKey, SlaConfiguration]:
        async with self._session_factory() as session:
            result = await session.execute(select(ContractualSla).order_by(ContractualSla.id))
            rows = result.scalars().all()

        entries: Dict[SlaKey, SlaConfiguration] = {}
        for row in rows:
            try:
                sla = SlaConfiguration.model_validate(row)
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid contractual SLA row {row.id}: {e.error_count()} errors",
                    extra={"sla_id": row.id}
                )
                continue
            entries[(sla.ticket_type, sla.metric_type, sla.priority)] = sla
        return entries

    async def initialize(self) -> None:
        """Pre-load the cache. Errors propagate."""
        await self.refresh_cache()

    async def refresh_cache(self) -> int:
        """
        Reload every SLA row and publish the new cache in one swap.

        Returns:
            Number of cached SLA configurations
        """
        try:
            snapshot = await self._cache.refresh()
        except Exception:
            self._metrics.record_cache_refresh(CACHE_NAME, success=False)
            logger.error("Failed to refresh contractual SLA cache", exc_info=True)
            raise

        self._metrics.record_cache_refresh(CACHE_NAME, success=True)
        logger.info(f"Contractual SLA cache refreshed: {len(snapshot.entries)} SLAs loaded")
        return len(snapshot.entries)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Contractual SLA cache cleared")

    async def _entries(self) -> List[SlaConfiguration]:
        snapshot = await self._cache.current()
        return list(snapshot.entries.values())

    async def get_sla(
        self,
        ticket_type: Union[TicketType, str],
        priority: Union[SlaPriority, str],
        metric_type: Union[MetricType, str]
    ) -> Optional[SlaConfiguration]:
        """
        Get the SLA for a ticket type, priority and metric.

        Returns:
            SlaConfiguration, or None when the contract defines no SLA
        """
        try:
            key = (parse_ticket_type(ticket_type), MetricType(metric_type), SlaPriority(priority))
        except ValueError:
            return None

        sla = await self._cache.get_or_refresh(key)
        if sla is None:
            logger.debug(f"No SLA configured for {key[0].value}/{key[1].value}/{key[2].value}")
        return sla

    async def get_slas_for_ticket_type(self, ticket_type: Union[TicketType, str]) -> List[SlaConfiguration]:
        ticket_type = parse_ticket_type(ticket_type)
        return [sla for sla in await self._entries() if sla.ticket_type == ticket_type]

    async def get_slas_for_metric_type(self, metric_type: Union[MetricType, str]) -> List[SlaConfiguration]:
        metric_type = MetricType(metric_type)
        return [sla for sla in await self._entries() if sla.metric_type == metric_type]

    async def get_all_slas(self) -> List[SlaConfiguration]:
        return await self._entries()

    async def get_statistics(self) -> SlaStatistics:
        """Counts per ticket type and metric, average thresholds and highest penalty."""
        slas = await self._entries()

        by_ticket_type: Dict[str, int] = {}
        by_metric_type: Dict[str, int] = {}
        response_hours = []
        resolution_hours = []
        highest_penalty = 0.0

        for sla in slas:
            by_ticket_type[sla.ticket_type.value] = by_ticket_type.get(sla.ticket_type.value, 0) + 1
            by_metric_type[sla.metric_type.value] = by_metric_type.get(sla.metric_type.value, 0) + 1
            if sla.metric_type == MetricType.RESPONSE_TIME:
                response_hours.append(sla.sla_hours)
            else:
                resolution_hours.append(sla.sla_hours)
            highest_penalty = max(highest_penalty, sla.penalty_percentage)

        return SlaStatistics(
            total_slas=len(slas),
            by_ticket_type=by_ticket_type,
            by_metric_type=by_metric_type,
            average_response_sla=round(sum(response_hours) / len(response_hours), 2) if response_hours else 0.0,
            average_resolution_sla=round(sum(resolution_hours) / len(resolution_hours), 2) if resolution_hours else 0.0,
            highest_penalty=highest_penalty
        )

    def get_cache_stats(self) -> Dict:
        return self._cache.stats()

    async def health_check(self) -> bool:
        """True when the contractual SLA table can be queried."""
        try:
            async with self._session_factory() as session:
                await session.execute(select(ContractualSla.id).limit(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Contractual SLA store health check failed: {e}", exc_info=True)
            return False
