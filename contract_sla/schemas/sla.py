"""
SLA Schemas Module

Pydantic schemas for contractual SLA configuration, compliance results,
metrics and dashboards.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from contract_sla.models.sla import TicketType, MetricType, SlaPriority


# ============================================================================
# SLA Configuration Schemas
# ============================================================================

class SlaConfiguration(BaseModel):
    """Contracted threshold for one (ticket type, metric, priority) triple."""
    id: Optional[int] = None
    ticket_type: TicketType
    metric_type: MetricType
    priority: SlaPriority
    sla_hours: float = Field(..., gt=0, description="Hours allowed by the contract")
    penalty_percentage: float = Field(0.0, ge=0, le=100, description="Penalty applied on breach")
    business_hours_only: bool = Field(True, description="Count only business hours")
    description: Optional[str] = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class SlaStatistics(BaseModel):
    """Aggregate view over the configured SLAs."""
    total_slas: int
    by_ticket_type: Dict[str, int]
    by_metric_type: Dict[str, int]
    average_response_sla: float
    average_resolution_sla: float
    highest_penalty: float


# ============================================================================
# Compliance Schemas
# ============================================================================

class ComplianceResult(BaseModel):
    """Outcome of one SLA metric for one ticket."""
    ticket_id: str
    ticket_type: TicketType
    priority: SlaPriority
    metric_type: MetricType
    sla_hours: float
    actual_hours: float
    is_compliant: bool
    breach_hours: float
    penalty_percentage: float
    business_hours_only: bool
    calculated_at: datetime

    class Config:
        frozen = True


class TicketSlaStatus(BaseModel):
    """Response and resolution compliance of a single ticket."""
    ticket_id: str
    ticket_number: Optional[str] = None
    ticket_type: TicketType
    priority: SlaPriority
    created_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    response_sla: Optional[ComplianceResult] = None
    resolution_sla: Optional[ComplianceResult] = None
    overall_compliance: bool
    total_penalty_percentage: float

    class Config:
        frozen = True


# ============================================================================
# Metrics Schemas
# ============================================================================

class SlaPriorityMetrics(BaseModel):
    """Compliance aggregate for one priority."""
    priority: SlaPriority
    total_tickets: int
    compliant_tickets: int
    breached_tickets: int
    compliance_percentage: float
    penalty_percentage: float
    average_response_time: float
    average_resolution_time: float


class SlaMetrics(BaseModel):
    """Compliance aggregate for one ticket type over a period."""
    period_start: datetime
    period_end: datetime
    ticket_type: TicketType
    total_tickets: int
    compliant_tickets: int
    breached_tickets: int
    compliance_percentage: float
    total_penalty_percentage: float
    average_response_time: float
    average_resolution_time: float
    metrics_by_priority: List[SlaPriorityMetrics] = []


# ============================================================================
# Dashboard Schemas
# ============================================================================

class OverallMetrics(BaseModel):
    total_tickets: int = 0
    compliant_tickets: int = 0
    breach_tickets: int = 0
    compliance_percentage: float = 0.0
    total_penalties: float = 0.0


class TrendingMetrics(BaseModel):
    """Daily series, oldest day first."""
    period: str
    days: List[str] = []
    compliance_trend: List[float] = []
    penalty_trend: List[float] = []
    volume_trend: List[int] = []


class SlaAlert(BaseModel):
    id: str
    type: str = Field(..., description="breach, warning or trend")
    severity: str = Field(..., description="low, medium, high or critical")
    ticket_id: Optional[str] = None
    ticket_type: TicketType
    priority: Optional[SlaPriority] = None
    message: str
    created_at: datetime
    acknowledged: bool = False


class SlaDashboardData(BaseModel):
    overall_metrics: OverallMetrics
    by_ticket_type: Dict[str, SlaMetrics]
    recent_breaches: List[TicketSlaStatus]
    trending_metrics: TrendingMetrics
    alerts: List[SlaAlert]
