"""
Priority Mapping Module

Closed mapping from raw ServiceNow priority values to the contractual
SLA priority of each ticket type.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from contract_sla.core.exceptions import UnsupportedTicketTypeException
from contract_sla.models.sla import TicketType, SlaPriority, SLA_PRIORITIES_BY_TICKET_TYPE


# ServiceNow priority codes per ticket type. Incidents and change tasks use
# 1-4; catalog tasks use 1-3 plus the Normal/Standard request classes.
_PRIORITY_CODES: Dict[TicketType, Dict[str, SlaPriority]] = {
    TicketType.INCIDENT: {
        "1": SlaPriority.P1,
        "2": SlaPriority.P2,
        "3": SlaPriority.P3,
        "4": SlaPriority.P4,
    },
    TicketType.CTASK: {
        "1": SlaPriority.P1,
        "2": SlaPriority.P2,
        "3": SlaPriority.P3,
        "4": SlaPriority.P4,
    },
    TicketType.SCTASK: {
        "1": SlaPriority.P1,
        "2": SlaPriority.P2,
        "3": SlaPriority.P3,
    },
}


@dataclass(frozen=True)
class PriorityMapping:
    """Result of mapping a raw priority; priority is None when unmapped."""
    raw: Optional[str]
    ticket_type: TicketType
    priority: Optional[SlaPriority] = None

    @property
    def is_mapped(self) -> bool:
        return self.priority is not None


def map_priority(raw: Optional[Any], ticket_type: TicketType) -> PriorityMapping:
    """
    Map a raw priority value to the ticket type's SLA priority.

    Accepts ServiceNow codes ("1"), display values ("1 - Critical") and
    canonical labels already valid for the type ("P2", "Normal").

    Args:
        raw: Priority as stored on the ticket
        ticket_type: Ticket type the priority belongs to

    Returns:
        PriorityMapping, unmapped when the value has no SLA priority
    """
    raw_text = None if raw is None else str(raw).strip()
    if not raw_text:
        return PriorityMapping(raw=raw_text, ticket_type=ticket_type)

    code = raw_text.split(" - ", 1)[0].strip()
    priority = _PRIORITY_CODES[ticket_type].get(code)

    if priority is None:
        for candidate in SLA_PRIORITIES_BY_TICKET_TYPE[ticket_type]:
            if candidate.value.casefold() in (code.casefold(), raw_text.casefold()):
                priority = candidate
                break

    return PriorityMapping(raw=raw_text, ticket_type=ticket_type, priority=priority)


def parse_ticket_type(value: Any) -> TicketType:
    """
    Parse a ticket type, never defaulting.

    Raises:
        UnsupportedTicketTypeException: value is not incident, ctask or sctask
    """
    if isinstance(value, TicketType):
        return value
    try:
        return TicketType(str(value).strip().lower())
    except ValueError:
        raise UnsupportedTicketTypeException(value)
