from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, Text, UniqueConstraint
from datetime import datetime
import enum
from contract_sla.core.database import Base


class TicketType(str, enum.Enum):
    INCIDENT = "incident"
    CTASK = "ctask"  # Change task
    SCTASK = "sctask"  # Service catalog task


class MetricType(str, enum.Enum):
    RESPONSE_TIME = "response_time"
    RESOLUTION_TIME = "resolution_time"


class SlaPriority(str, enum.Enum):
    SEVERIDADE_1 = "Severidade 1"
    SEVERIDADE_2 = "Severidade 2"
    SEVERIDADE_3 = "Severidade 3"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    NORMAL = "Normal"  # Service catalog only
    STANDARD = "Standard"  # Service catalog only


# Canonical priorities a contract may define for each ticket type
SLA_PRIORITIES_BY_TICKET_TYPE = {
    TicketType.INCIDENT: (
        SlaPriority.SEVERIDADE_1,
        SlaPriority.SEVERIDADE_2,
        SlaPriority.SEVERIDADE_3,
        SlaPriority.P1,
        SlaPriority.P2,
        SlaPriority.P3,
        SlaPriority.P4,
    ),
    TicketType.CTASK: (
        SlaPriority.P1,
        SlaPriority.P2,
        SlaPriority.P3,
        SlaPriority.P4,
    ),
    TicketType.SCTASK: (
        SlaPriority.NORMAL,
        SlaPriority.STANDARD,
        SlaPriority.P1,
        SlaPriority.P2,
        SlaPriority.P3,
    ),
}


class ContractualSla(Base):
    """Contracted SLA threshold for a (ticket type, metric, priority) triple."""
    __tablename__ = "contractual_slas"
    __table_args__ = (
        UniqueConstraint("ticket_type", "metric_type", "priority", name="uq_contractual_sla_lookup"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Lookup key
    ticket_type = Column(String, nullable=False, index=True)  # TicketType value
    metric_type = Column(String, nullable=False, index=True)  # MetricType value
    priority = Column(String, nullable=False)  # SlaPriority value

    # Contract terms
    sla_hours = Column(Float, nullable=False)
    penalty_percentage = Column(Float, nullable=False, default=0.0)
    business_hours_only = Column(Boolean, nullable=False, default=True)
    description = Column(Text, default="")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
