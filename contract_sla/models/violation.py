from sqlalchemy import Column, String, DateTime, Float, Boolean, JSON
from datetime import datetime
import uuid
import enum
from contract_sla.core.database import Base


class ViolationSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ViolationTracking(Base):
    """Latest contractual violation verdict for a ticket (one row per ticket)."""
    __tablename__ = "violation_tracking"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ticket_sys_id = Column(String, unique=True, nullable=False, index=True)
    ticket_number = Column(String)
    ticket_type = Column(String, nullable=False, index=True)  # TicketType value

    # Verdict
    is_violated = Column(Boolean, nullable=False, default=False)
    penalty_percentage = Column(Float, nullable=False, default=0.0)
    financial_impact = Column(Float, nullable=False, default=0.0)
    violation_result = Column(JSON, nullable=False)  # Serialized ViolationVerdict

    # Bookkeeping
    processed = Column(Boolean, nullable=False, default=True, index=True)
    financial_impact_calculated = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)
