"""
SLA API Endpoints

Contractual SLA configuration, per-ticket compliance, period metrics and
dashboard data.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from datetime import datetime
import logging

from contract_sla.api.deps import get_sla_store, get_compliance_service
from contract_sla.schemas.sla import (
    SlaConfiguration,
    SlaStatistics,
    TicketSlaStatus,
    SlaMetrics,
    SlaDashboardData,
)
from contract_sla.services.compliance_service import ComplianceService
from contract_sla.services.sla_config_service import SlaConfigurationStore


logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# SLA Configuration Endpoints
# ============================================================================

@router.get("/config", response_model=List[SlaConfiguration])
async def list_slas(store: SlaConfigurationStore = Depends(get_sla_store)):
    """List every contractual SLA."""
    return await store.get_all_slas()


@router.get("/config/statistics", response_model=SlaStatistics)
async def get_sla_statistics(store: SlaConfigurationStore = Depends(get_sla_store)):
    return await store.get_statistics()


@router.post("/config/refresh")
async def refresh_sla_cache(store: SlaConfigurationStore = Depends(get_sla_store)):
    """Reload the contractual SLA cache from the database."""
    count = await store.refresh_cache()
    return {"refreshed": True, "total_slas": count, "cache": store.get_cache_stats()}


@router.get("/config/{ticket_type}", response_model=List[SlaConfiguration])
async def list_slas_for_ticket_type(
    ticket_type: str,
    store: SlaConfigurationStore = Depends(get_sla_store)
):
    return await store.get_slas_for_ticket_type(ticket_type)


@router.get("/config/{ticket_type}/{metric_type}/{priority}", response_model=SlaConfiguration)
async def get_sla(
    ticket_type: str,
    metric_type: str,
    priority: str,
    store: SlaConfigurationStore = Depends(get_sla_store)
):
    """Get the SLA of one ticket type, metric and priority."""
    sla = await store.get_sla(ticket_type, priority, metric_type)
    if sla is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No SLA configured for {ticket_type}/{metric_type}/{priority}"
        )
    return sla


# ============================================================================
# Compliance Endpoints
# ============================================================================

@router.get("/tickets/{ticket_type}/{ticket_id}", response_model=TicketSlaStatus)
async def get_ticket_sla(
    ticket_type: str,
    ticket_id: str,
    service: ComplianceService = Depends(get_compliance_service)
):
    """
    Get response and resolution compliance of a ticket.

    Returns 404 when the ticket is missing or its priority has no SLA.
    """
    result = await service.calculate_ticket_sla(ticket_id, ticket_type)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No SLA status available for {ticket_type} {ticket_id}"
        )
    return result


@router.get("/metrics", response_model=List[SlaMetrics])
async def get_sla_metrics(
    start: datetime = Query(..., description="Period start"),
    end: datetime = Query(..., description="Period end"),
    ticket_type: Optional[str] = Query(None, description="Restrict to one ticket type"),
    service: ComplianceService = Depends(get_compliance_service)
):
    return await service.generate_sla_metrics(start, end, ticket_type)


@router.get("/dashboard", response_model=SlaDashboardData)
async def get_sla_dashboard(
    start: datetime = Query(..., description="Period start"),
    end: datetime = Query(..., description="Period end"),
    service: ComplianceService = Depends(get_compliance_service)
):
    return await service.get_dashboard_data(start, end)
