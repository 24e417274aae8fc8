from contract_sla.core.database import Base
from contract_sla.models.sla import (
    ContractualSla,
    TicketType,
    MetricType,
    SlaPriority,
    SLA_PRIORITIES_BY_TICKET_TYPE,
)
from contract_sla.models.ticket import TicketDocument
from contract_sla.models.support_group import SupportGroup
from contract_sla.models.violation import ViolationTracking, ViolationSeverity

__all__ = [
    "Base",
    "ContractualSla",
    "TicketType",
    "MetricType",
    "SlaPriority",
    "SLA_PRIORITIES_BY_TICKET_TYPE",
    "TicketDocument",
    "SupportGroup",
    "ViolationTracking",
    "ViolationSeverity",
]
