"""
Ticket Source Module

Reads ticket documents mirrored from ServiceNow and decodes them into
TicketSnapshot values. This is the only place that touches the raw
document shape.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import select, and_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.config import settings
from contract_sla.models.sla import TicketType
from contract_sla.models.ticket import TicketDocument
from contract_sla.schemas.ticket import AssignmentGroupRef, TicketSnapshot


logger = logging.getLogger(__name__)

# Key of the ticket record inside the stored document envelope
TICKET_PAYLOAD_KEYS = {
    TicketType.INCIDENT: "incident",
    TicketType.CTASK: "change_task",
    TicketType.SCTASK: "sc_task",
}

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def _field_value(value: Any) -> Any:
    """Unwrap ServiceNow {"value": ..., "display_value": ...} fields."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def to_business_local(value: Optional[datetime], timezone: str) -> Optional[datetime]:
    """Convert an aware datetime to naive wall-clock time in timezone."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(timezone)).replace(tzinfo=None)


def parse_timestamp(value: Any, timezone: str) -> Optional[datetime]:
    """
    Parse a ServiceNow timestamp.

    Accepts datetimes, "YYYY-MM-DD HH:MM:SS" and ISO 8601 strings. Blank
    and unparseable values yield None.
    """
    value = _field_value(value)
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_business_local(value, timezone)
    if not isinstance(value, str):
        return None

    text_value = value.strip()
    if text_value.endswith("Z"):
        text_value = text_value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text_value)
    except ValueError:
        logger.warning(f"Unparseable ticket timestamp: {value!r}")
        return None
    return to_business_local(parsed, timezone)


def _parse_flag(value: Any) -> Optional[bool]:
    value = _field_value(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return None


def _parse_assignment_group(value: Any) -> AssignmentGroupRef:
    if isinstance(value, dict):
        return AssignmentGroupRef(
            value=value.get("value") or None,
            display_value=value.get("display_value") or None
        )
    if isinstance(value, str) and value:
        return AssignmentGroupRef(value=value)
    return AssignmentGroupRef()


def _optional_text(value: Any) -> Optional[str]:
    value = _field_value(value)
    if value is None:
        return None
    return str(value)


def decode_ticket_document(
    data: Dict[str, Any],
    ticket_type: TicketType,
    timezone: str = settings.BUSINESS_TIMEZONE,
    created_on: Optional[datetime] = None
) -> Optional[TicketSnapshot]:
    """
    Decode a stored ticket document into a TicketSnapshot.

    Args:
        data: Document envelope, e.g. {"incident": {...}, "slms": [...]}
        ticket_type: Type of the ticket, selects the envelope key
        timezone: Business timezone aware timestamps are converted to
        created_on: Creation time to use when the record has none

    Returns:
        TicketSnapshot, or None when the envelope holds no usable record
    """
    record = (data or {}).get(TICKET_PAYLOAD_KEYS[ticket_type])
    if not isinstance(record, dict):
        return None

    sys_id = _optional_text(record.get("sys_id"))
    sys_created_on = parse_timestamp(record.get("sys_created_on"), timezone) or created_on
    if not sys_id or sys_created_on is None:
        logger.warning(
            f"Ticket document for {ticket_type.value} lacks sys_id or sys_created_on",
            extra={"ticket_type": ticket_type.value, "sys_id": sys_id}
        )
        return None

    return TicketSnapshot(
        sys_id=sys_id,
        number=_optional_text(record.get("number")),
        ticket_type=ticket_type,
        state=_optional_text(record.get("state")),
        assignment_group=_parse_assignment_group(record.get("assignment_group")),
        sys_created_on=sys_created_on,
        sys_updated_on=parse_timestamp(record.get("sys_updated_on"), timezone),
        closed_at=parse_timestamp(record.get("closed_at"), timezone),
        resolved_at=parse_timestamp(record.get("resolved_at"), timezone),
        first_response_date=parse_timestamp(record.get("first_response_date"), timezone),
        priority=_optional_text(record.get("priority")),
        contractual_violation=_parse_flag(record.get("contractual_violation")),
    )


class TicketSource:
    """
    Read access to the ticket document mirror.

    Args:
        session_factory: Callable returning a new AsyncSession
        timezone: Business timezone for timestamp decoding
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        timezone: str = settings.BUSINESS_TIMEZONE
    ):
        self._session_factory = session_factory
        self.timezone = timezone

    def _decode(self, row: TicketDocument) -> Optional[TicketSnapshot]:
        return decode_ticket_document(
            row.data,
            TicketType(row.ticket_type),
            timezone=self.timezone,
            created_on=row.sys_created_on
        )

    async def get_ticket(self, sys_id: str, ticket_type: TicketType) -> Optional[TicketSnapshot]:
        """
        Load one ticket.

        Returns:
            TicketSnapshot if found and decodable, None otherwise
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketDocument).where(
                    and_(
                        TicketDocument.sys_id == sys_id,
                        TicketDocument.ticket_type == ticket_type.value
                    )
                )
            )
            row = result.scalar_one_or_none()

        if row is None:
            return None
        return self._decode(row)

    async def list_created_between(
        self,
        start: datetime,
        end: datetime,
        ticket_type: TicketType
    ) -> List[TicketSnapshot]:
        """Tickets of a type created in [start, end], newest first."""
        start = to_business_local(start, self.timezone)
        end = to_business_local(end, self.timezone)

        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketDocument)
                .where(
                    and_(
                        TicketDocument.ticket_type == ticket_type.value,
                        TicketDocument.sys_created_on >= start,
                        TicketDocument.sys_created_on <= end
                    )
                )
                .order_by(TicketDocument.sys_created_on.desc())
            )
            rows = result.scalars().all()

        tickets = []
        for row in rows:
            ticket = self._decode(row)
            if ticket is not None:
                tickets.append(ticket)
        return tickets

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Ticket source health check failed: {e}", exc_info=True)
            return False
