"""
Contract SLA Test Configuration

Provides shared fixtures for async testing with:
- In-memory SQLite database
- Engine components wired to the test database
- Test client with async support
- Sample data factories for SLAs, tickets and support groups
"""
from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from contract_sla.core.components import build_components
from contract_sla.core.database import Base
from contract_sla.main import app
from contract_sla.models.sla import ContractualSla, TicketType, MetricType, SlaPriority
from contract_sla.models.support_group import SupportGroup
from contract_sla.models.ticket import TicketDocument
from contract_sla.services.business_hours import BusinessHoursCalculator, DEFAULT_BUSINESS_HOURS
from contract_sla.services.compliance_service import ComplianceService
from contract_sla.services.metrics_service import MetricsCollector
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.support_group_catalog import SupportGroupCatalog
from contract_sla.services.ticket_source import TicketSource, TICKET_PAYLOAD_KEYS
from contract_sla.services.violation_service import ViolationService


# Test database URL - SQLite in-memory with async support
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Friday; business-local wall clock
NOW = datetime(2025, 3, 14, 12, 0)


class FakeClock:
    """Settable clock for TTL and dashboard tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async engine for testing with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Collector on a private registry so tests never clash on metric names."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def calculator() -> BusinessHoursCalculator:
    return BusinessHoursCalculator(DEFAULT_BUSINESS_HOURS)


@pytest.fixture
def sla_store(session_factory, metrics) -> SlaConfigurationStore:
    return SlaConfigurationStore(session_factory, metrics=metrics)


@pytest.fixture
def ticket_source(session_factory) -> TicketSource:
    return TicketSource(session_factory, timezone="America/Sao_Paulo")


@pytest.fixture
def group_catalog(session_factory, metrics, clock) -> SupportGroupCatalog:
    return SupportGroupCatalog(session_factory, ttl=timedelta(minutes=10), metrics=metrics, clock=clock)


@pytest.fixture
def compliance_service(sla_store, ticket_source, calculator, metrics, clock) -> ComplianceService:
    return ComplianceService(sla_store, ticket_source, calculator, metrics=metrics, clock=clock)


@pytest.fixture
def violation_service(
    session_factory, ticket_source, sla_store, compliance_service, group_catalog, metrics, clock
) -> ViolationService:
    return ViolationService(
        session_factory, ticket_source, sla_store, compliance_service, group_catalog, metrics=metrics, clock=clock
    )


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, metrics) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the test database."""
    app.state.components = build_components(session_factory, metrics=metrics)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.components


# -----------------------------------------------------------------------------
# Data Factories
# -----------------------------------------------------------------------------

def _servicenow_timestamp(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


class ContractualSlaFactory:
    """Factory for creating contractual SLA rows."""

    @staticmethod
    async def create(
        db: AsyncSession,
        ticket_type: TicketType = TicketType.INCIDENT,
        metric_type: MetricType = MetricType.RESOLUTION_TIME,
        priority: SlaPriority = SlaPriority.P1,
        sla_hours: float = 4.0,
        penalty_percentage: float = 10.0,
        business_hours_only: bool = True
    ) -> ContractualSla:
        sla = ContractualSla(
            ticket_type=ticket_type.value,
            metric_type=metric_type.value,
            priority=priority.value,
            sla_hours=sla_hours,
            penalty_percentage=penalty_percentage,
            business_hours_only=business_hours_only,
            description=f"Test {ticket_type.value} {priority.value} {metric_type.value}"
        )
        db.add(sla)
        await db.commit()
        await db.refresh(sla)
        return sla


class TicketDocumentFactory:
    """Factory for creating ticket documents in the ServiceNow envelope shape."""

    @staticmethod
    async def create(
        db: AsyncSession,
        ticket_type: TicketType = TicketType.INCIDENT,
        sys_id: str = None,
        number: str = None,
        priority: Optional[str] = "1",
        sys_created_on: datetime = datetime(2025, 3, 10, 8, 0),
        sys_updated_on: Optional[datetime] = None,
        first_response_date: Optional[datetime] = None,
        resolved_at: Optional[datetime] = None,
        closed_at: Optional[datetime] = None,
        assignment_group: Optional[dict] = None,
        contractual_violation: Optional[bool] = None,
        state: str = "6"
    ) -> TicketDocument:
        sys_id = sys_id or uuid.uuid4().hex
        record = {
            "sys_id": sys_id,
            "number": number or f"{ticket_type.value.upper()}{uuid.uuid4().hex[:7].upper()}",
            "state": state,
            "priority": priority,
            "assignment_group": assignment_group or {"value": "", "display_value": ""},
            "sys_created_on": _servicenow_timestamp(sys_created_on),
            "sys_updated_on": _servicenow_timestamp(sys_updated_on or resolved_at or closed_at or sys_created_on),
            "first_response_date": _servicenow_timestamp(first_response_date),
            "resolved_at": _servicenow_timestamp(resolved_at),
            "closed_at": _servicenow_timestamp(closed_at),
        }
        if contractual_violation is not None:
            record["contractual_violation"] = "true" if contractual_violation else "false"

        document = TicketDocument(
            sys_id=sys_id,
            ticket_type=ticket_type.value,
            number=record["number"],
            sys_created_on=sys_created_on,
            data={TICKET_PAYLOAD_KEYS[ticket_type]: record, "slms": []}
        )
        db.add(document)
        await db.commit()
        await db.refresh(document)
        return document


class SupportGroupFactory:
    """Factory for creating support groups."""

    @staticmethod
    async def create(
        db: AsyncSession,
        id: str = None,
        name: str = "Service Desk",
        tags: list = None,
        owner: str = "Service Desk Lead"
    ) -> SupportGroup:
        group = SupportGroup(
            id=id or uuid.uuid4().hex,
            name=name,
            tags=tags or ["n1"],
            description=f"{name} group",
            owner=owner,
            temperature=0.5
        )
        db.add(group)
        await db.commit()
        await db.refresh(group)
        return group


# Export factories for use in tests
__all__ = [
    "NOW",
    "FakeClock",
    "ContractualSlaFactory",
    "TicketDocumentFactory",
    "SupportGroupFactory",
]
