"""
Core Exceptions
================

Domain errors raised by the SLA engine and translated to HTTP errors by
the route layer.
"""

from typing import Any, Optional


class ContractSlaException(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundException(ContractSlaException):
    """A requested ticket or configuration does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class UnsupportedTicketTypeException(ContractSlaException):
    """Ticket type outside incident/ctask/sctask."""

    def __init__(self, ticket_type: Any):
        self.ticket_type = ticket_type
        super().__init__(
            f"Unsupported ticket type: {ticket_type}",
            {"ticket_type": str(ticket_type)}
        )


class InvalidBusinessHoursException(ContractSlaException):
    """Business hours configuration violates its invariants."""
