"""
Violation API Endpoints

Contractual violation validation, stored verdicts and statistics.
"""

from fastapi import APIRouter, Body, Depends, Query
from typing import Optional
from datetime import datetime
import logging

from contract_sla.api.deps import get_violation_service
from contract_sla.schemas.violation import (
    ViolationValidationRules,
    ViolationVerdict,
    ViolationStatistics,
)
from contract_sla.services.violation_service import ViolationService


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/statistics", response_model=ViolationStatistics)
async def get_violation_statistics(
    start: datetime = Query(..., description="Period start (UTC)"),
    end: datetime = Query(..., description="Period end (UTC)"),
    service: ViolationService = Depends(get_violation_service)
):
    return await service.generate_violation_statistics(start, end)


@router.post("/{ticket_type}/{ticket_id}/validate", response_model=ViolationVerdict)
async def validate_violation(
    ticket_type: str,
    ticket_id: str,
    rules: Optional[ViolationValidationRules] = Body(None),
    service: ViolationService = Depends(get_violation_service)
):
    """
    Validate a ticket against the contractual violation rules.

    Without a body every rule is evaluated with the lenient policy: any
    failing rule marks the ticket as violated.
    """
    return await service.validate_contractual_violation(
        ticket_id, ticket_type, rules or ViolationValidationRules.lenient()
    )


@router.get("/{ticket_sys_id}", response_model=ViolationVerdict)
async def get_violation(
    ticket_sys_id: str,
    service: ViolationService = Depends(get_violation_service)
):
    """Get the last stored verdict of a ticket."""
    return await service.get_violation(ticket_sys_id)
