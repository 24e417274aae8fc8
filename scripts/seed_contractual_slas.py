"""
Contractual SLA seeding script.

Replaces the contents of contractual_slas with the SLA table of the
support contract (incident, change task and catalog task thresholds).
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete
from contract_sla.core.database import AsyncSessionLocal, create_tables
from contract_sla.models.sla import ContractualSla, TicketType, MetricType, SlaPriority


RESPONSE = MetricType.RESPONSE_TIME
RESOLUTION = MetricType.RESOLUTION_TIME

# (ticket type, metric, priority, sla hours, penalty %)
CONTRACT_SLAS = [
    # Incidents
    (TicketType.INCIDENT, RESPONSE, SlaPriority.SEVERIDADE_1, 0.25, 0.5),
    (TicketType.INCIDENT, RESPONSE, SlaPriority.SEVERIDADE_2, 1, 0.5),
    (TicketType.INCIDENT, RESPONSE, SlaPriority.SEVERIDADE_3, 4, 0.5),
    (TicketType.INCIDENT, RESPONSE, SlaPriority.P1, 0.25, 1.0),
    (TicketType.INCIDENT, RESPONSE, SlaPriority.P2, 1, 0.5),
    (TicketType.INCIDENT, RESPONSE, SlaPriority.P3, 4, 0.25),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.SEVERIDADE_1, 2, 0.5),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.SEVERIDADE_2, 8, 0.5),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.SEVERIDADE_3, 24, 0.5),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.P1, 2, 1.0),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.P2, 8, 0.5),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.P3, 24, 0.25),
    (TicketType.INCIDENT, RESOLUTION, SlaPriority.P4, 72, 0.1),
    # Change tasks
    (TicketType.CTASK, RESPONSE, SlaPriority.P1, 1, 0.5),
    (TicketType.CTASK, RESPONSE, SlaPriority.P2, 4, 0.25),
    (TicketType.CTASK, RESPONSE, SlaPriority.P3, 8, 0.1),
    (TicketType.CTASK, RESPONSE, SlaPriority.P4, 24, 0.05),
    (TicketType.CTASK, RESOLUTION, SlaPriority.P1, 8, 1.0),
    (TicketType.CTASK, RESOLUTION, SlaPriority.P2, 24, 0.5),
    (TicketType.CTASK, RESOLUTION, SlaPriority.P3, 72, 0.25),
    (TicketType.CTASK, RESOLUTION, SlaPriority.P4, 168, 0.1),
    # Service catalog tasks
    (TicketType.SCTASK, RESPONSE, SlaPriority.NORMAL, 8, 0.1),
    (TicketType.SCTASK, RESPONSE, SlaPriority.STANDARD, 8, 0.1),
    (TicketType.SCTASK, RESOLUTION, SlaPriority.NORMAL, 192, 0.5),
    (TicketType.SCTASK, RESOLUTION, SlaPriority.STANDARD, 192, 0.25),
    (TicketType.SCTASK, RESOLUTION, SlaPriority.P1, 24, 0.5),
    (TicketType.SCTASK, RESOLUTION, SlaPriority.P2, 72, 0.25),
    (TicketType.SCTASK, RESOLUTION, SlaPriority.P3, 120, 0.1),
]


def _description(ticket_type: TicketType, metric_type: MetricType, priority: SlaPriority, hours: float) -> str:
    metric = "response" if metric_type == RESPONSE else "resolution"
    return f"{ticket_type.value.upper()} {priority.value} {metric} within {hours:g} business hours"


async def main():
    """Main seeding function."""
    print("=" * 60)
    print("Seeding contractual SLAs")
    print("=" * 60)

    await create_tables()

    async with AsyncSessionLocal() as db:
        try:
            await db.execute(delete(ContractualSla))
            for ticket_type, metric_type, priority, hours, penalty in CONTRACT_SLAS:
                db.add(ContractualSla(
                    ticket_type=ticket_type.value,
                    metric_type=metric_type.value,
                    priority=priority.value,
                    sla_hours=float(hours),
                    penalty_percentage=penalty,
                    business_hours_only=True,
                    description=_description(ticket_type, metric_type, priority, hours)
                ))
            await db.commit()

            print(f"\n✓ {len(CONTRACT_SLAS)} contractual SLAs loaded")
            print("=" * 60)

        except Exception as e:
            print(f"\n✗ Error during seeding: {str(e)}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(main())
