"""
Composition root for the SLA engine.

Each component is constructed once per process and receives its
collaborators explicitly.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.config import Settings, settings, business_hours_config_from_settings
from contract_sla.services.business_hours import BusinessHoursCalculator
from contract_sla.services.compliance_service import ComplianceService
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.support_group_catalog import SupportGroupCatalog
from contract_sla.services.ticket_source import TicketSource
from contract_sla.services.violation_service import ViolationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineComponents:
    calculator: BusinessHoursCalculator
    sla_store: SlaConfigurationStore
    ticket_source: TicketSource
    group_catalog: SupportGroupCatalog
    compliance_service: ComplianceService
    violation_service: ViolationService
    metrics: MetricsCollector

    async def initialize(self) -> None:
        """Warm both caches. Errors propagate."""
        await self.sla_store.initialize()
        await self.violation_service.initialize()

    async def health(self) -> dict:
        return {
            "sla_store": await self.sla_store.health_check(),
            "ticket_source": await self.ticket_source.health_check(),
            "violation_service": await self.violation_service.health_check(),
        }


def build_components(
    session_factory: Callable[[], AsyncSession],
    config: Settings = settings,
    metrics: Optional[MetricsCollector] = None
) -> EngineComponents:
    """
    Wire the engine together.

    Args:
        session_factory: Callable returning a new AsyncSession
        config: Application settings
        metrics: Prometheus collector, the process-wide one by default

    Returns:
        EngineComponents sharing one calculator and one SLA store
    """
    metrics = metrics or metrics_collector
    calculator = BusinessHoursCalculator(business_hours_config_from_settings(config))
    sla_store = SlaConfigurationStore(session_factory, metrics=metrics)
    ticket_source = TicketSource(session_factory, timezone=config.BUSINESS_TIMEZONE)
    group_catalog = SupportGroupCatalog(
        session_factory,
        ttl=timedelta(minutes=config.SUPPORT_GROUP_CACHE_TTL_MINUTES),
        metrics=metrics
    )

    compliance_service = ComplianceService(sla_store, ticket_source, calculator, metrics=metrics, config=config)

    return EngineComponents(
        calculator=calculator,
        sla_store=sla_store,
        ticket_source=ticket_source,
        group_catalog=group_catalog,
        compliance_service=compliance_service,
        violation_service=ViolationService(
            session_factory, ticket_source, sla_store, compliance_service, group_catalog, metrics=metrics
        ),
        metrics=metrics
    )
