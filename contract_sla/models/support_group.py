from sqlalchemy import Column, String, DateTime, Float, JSON, Text
from datetime import datetime
from contract_sla.core.database import Base


class SupportGroup(Base):
    """Support group authorized to close contract tickets."""
    __tablename__ = "support_groups"

    id = Column(String, primary_key=True)  # ServiceNow assignment group sys_id
    name = Column(String, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    description = Column(Text, default="")
    owner = Column(String, default="")
    temperature = Column(Float, nullable=False, default=0.0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
