"""
Violation Schemas Module

Pydantic schemas for contractual violation rules, verdicts and statistics.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from contract_sla.models.sla import TicketType
from contract_sla.models.violation import ViolationSeverity


class ViolationValidationRules(BaseModel):
    """Which rules to evaluate and how to combine them."""
    validate_group_closure: bool = True
    validate_sla_breach: bool = True
    validate_violation_marking: bool = True
    strict_validation: bool = Field(
        ...,
        description="True: violated only when every enabled rule fails (AND). "
                    "False: violated when any enabled rule fails (OR)."
    )

    @classmethod
    def strict(cls) -> "ViolationValidationRules":
        return cls(strict_validation=True)

    @classmethod
    def lenient(cls) -> "ViolationValidationRules":
        return cls(strict_validation=False)


class ViolationReason(BaseModel):
    """Outcome of a single violation rule."""
    rule_name: str
    rule_description: str
    is_compliant: bool
    severity: ViolationSeverity
    validation_details: Dict[str, Any] = {}


class ViolationVerdict(BaseModel):
    """Combined outcome of the violation rules for one ticket."""
    ticket_id: str
    ticket_number: Optional[str] = None
    ticket_type: TicketType
    assignment_group: Optional[str] = Field(None, description="Assignment group name, or sys_id when unnamed")
    is_violated: bool
    strict_validation: bool
    violation_reasons: List[ViolationReason] = []
    penalty_percentage: float = 0.0
    financial_impact: float = 0.0
    validation_timestamp: datetime


class AnalysisPeriod(BaseModel):
    start_date: datetime
    end_date: datetime


class ViolationStatistics(BaseModel):
    """Aggregate over persisted verdicts in a period."""
    total_tickets_analyzed: int
    total_violations_found: int
    violation_rate_percentage: float
    violations_by_ticket_type: Dict[str, int]
    violations_by_severity: Dict[str, int]
    violations_by_group: Dict[str, int]
    total_financial_impact: float
    analysis_period: AnalysisPeriod


class SupportGroupEntry(BaseModel):
    """Support group as held in the catalog cache."""
    id: str
    name: str = ""
    tags: List[str] = []
    description: str = ""
    owner: str = ""
    temperature: float = 0.0

    class Config:
        from_attributes = True
        frozen = True
