"""
Ticket Schemas Module

Typed view of a ticket as consumed by the compliance and violation
services. Produced once at the ticket-source boundary.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from contract_sla.models.sla import TicketType


class AssignmentGroupRef(BaseModel):
    """ServiceNow reference to the ticket's assignment group."""
    value: Optional[str] = Field(None, description="Assignment group sys_id")
    display_value: Optional[str] = Field(None, description="Assignment group name")

    class Config:
        frozen = True


class TicketSnapshot(BaseModel):
    """Immutable ticket values used for one evaluation."""
    sys_id: str
    number: Optional[str] = None
    ticket_type: TicketType
    state: Optional[str] = None
    assignment_group: AssignmentGroupRef = Field(default_factory=AssignmentGroupRef)
    sys_created_on: datetime
    sys_updated_on: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    first_response_date: Optional[datetime] = None
    priority: Optional[str] = Field(None, description="Raw, type-specific priority value")
    contractual_violation: Optional[bool] = Field(
        None, description="Explicit contractual violation flag set on the ticket"
    )

    class Config:
        frozen = True

    @property
    def resolution_timestamp(self) -> Optional[datetime]:
        """Resolution time, falling back to closure time."""
        return self.resolved_at or self.closed_at
