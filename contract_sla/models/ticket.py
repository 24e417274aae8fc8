from sqlalchemy import Column, String, DateTime, JSON, UniqueConstraint
from datetime import datetime
import uuid
from contract_sla.core.database import Base


class TicketDocument(Base):
    """
    Mirror of a ServiceNow ticket as written by the sync pipeline.

    ``data`` keeps the raw envelope (``{"incident": {...}, "slms": [...]}``);
    only the columns needed for lookups are lifted out of it.
    """
    __tablename__ = "ticket_documents"
    __table_args__ = (
        UniqueConstraint("sys_id", "ticket_type", name="uq_ticket_document"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sys_id = Column(String, nullable=False, index=True)
    ticket_type = Column(String, nullable=False, index=True)  # TicketType value
    number = Column(String, index=True)
    sys_created_on = Column(DateTime, nullable=False, index=True)

    data = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
