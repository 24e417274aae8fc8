"""
Compliance Calculator Tests

Tests for per-ticket SLA compliance, period metrics, breaches, trends,
alerts and the dashboard.
"""
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.exceptions import UnsupportedTicketTypeException
from contract_sla.models.sla import TicketType, MetricType, SlaPriority
from contract_sla.services.compliance_service import ComplianceService, percentage
from tests.conftest import ContractualSlaFactory, TicketDocumentFactory


async def seed_incident_slas(db: AsyncSession):
    await ContractualSlaFactory.create(
        db, metric_type=MetricType.RESPONSE_TIME, priority=SlaPriority.P1, sla_hours=1, penalty_percentage=5
    )
    await ContractualSlaFactory.create(
        db, metric_type=MetricType.RESOLUTION_TIME, priority=SlaPriority.P1, sla_hours=4, penalty_percentage=10
    )
    await ContractualSlaFactory.create(
        db, metric_type=MetricType.RESOLUTION_TIME, priority=SlaPriority.P2, sla_hours=8, penalty_percentage=5
    )


class TestCalculateCompliance:
    """Tests for single-metric compliance."""

    @pytest.mark.asyncio
    async def test_breach_hours_and_penalty(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)

        result = await compliance_service.calculate_compliance(
            "t1", TicketType.INCIDENT, SlaPriority.P1, MetricType.RESOLUTION_TIME,
            datetime(2025, 3, 10, 8, 0), datetime(2025, 3, 10, 14, 0)
        )

        assert result.actual_hours == 6.0
        assert result.is_compliant is False
        assert result.breach_hours == 2.0
        assert result.penalty_percentage == 10
        assert result.business_hours_only is True

    @pytest.mark.asyncio
    async def test_compliant_has_no_penalty(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)

        # 16:00 Friday to 10:00 Monday is three business hours
        result = await compliance_service.calculate_compliance(
            "t1", TicketType.INCIDENT, SlaPriority.P1, MetricType.RESOLUTION_TIME,
            datetime(2025, 3, 14, 16, 0), datetime(2025, 3, 17, 10, 0)
        )

        assert result.actual_hours == 3.0
        assert result.is_compliant is True
        assert result.breach_hours == 0.0
        assert result.penalty_percentage == 0.0

    @pytest.mark.asyncio
    async def test_round_the_clock_sla(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await ContractualSlaFactory.create(
            db_session, priority=SlaPriority.P1, sla_hours=24, business_hours_only=False
        )

        result = await compliance_service.calculate_compliance(
            "t1", TicketType.INCIDENT, SlaPriority.P1, MetricType.RESOLUTION_TIME,
            datetime(2025, 3, 14, 16, 0), datetime(2025, 3, 17, 10, 0)
        )

        assert result.actual_hours == 66.0
        assert result.breach_hours == 42.0
        assert result.business_hours_only is False

    @pytest.mark.asyncio
    async def test_no_sla_returns_none(self, compliance_service: ComplianceService):
        result = await compliance_service.calculate_compliance(
            "t1", TicketType.CTASK, SlaPriority.P3, MetricType.RESPONSE_TIME,
            datetime(2025, 3, 10, 8, 0), datetime(2025, 3, 10, 9, 0)
        )
        assert result is None


class TestTicketSla:
    """Tests for per-ticket status."""

    @pytest.mark.asyncio
    async def test_ticket_status(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        document = await TicketDocumentFactory.create(
            db_session,
            priority="1",
            sys_created_on=datetime(2025, 3, 10, 8, 0),
            first_response_date=datetime(2025, 3, 10, 8, 30),
            resolved_at=datetime(2025, 3, 10, 14, 0)
        )

        status = await compliance_service.calculate_ticket_sla(document.sys_id, "incident")

        assert status.priority == SlaPriority.P1
        assert status.response_sla.is_compliant is True
        assert status.response_sla.actual_hours == 0.5
        assert status.resolution_sla.is_compliant is False
        assert status.overall_compliance is False
        assert status.total_penalty_percentage == 10

    @pytest.mark.asyncio
    async def test_open_ticket_has_no_results(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        document = await TicketDocumentFactory.create(db_session, priority="1")

        status = await compliance_service.calculate_ticket_sla(document.sys_id, TicketType.INCIDENT)

        assert status.response_sla is None
        assert status.resolution_sla is None
        assert status.overall_compliance is True
        assert status.total_penalty_percentage == 0

    @pytest.mark.asyncio
    async def test_resolution_uses_closed_at(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        document = await TicketDocumentFactory.create(
            db_session, priority="2", closed_at=datetime(2025, 3, 10, 12, 0)
        )

        status = await compliance_service.calculate_ticket_sla(document.sys_id, TicketType.INCIDENT)

        assert status.resolved_at == datetime(2025, 3, 10, 12, 0)
        assert status.resolution_sla.actual_hours == 4.0
        assert status.resolution_sla.is_compliant is True

    @pytest.mark.asyncio
    async def test_missing_ticket(self, compliance_service: ComplianceService):
        assert await compliance_service.calculate_ticket_sla("missing", TicketType.INCIDENT) is None

    @pytest.mark.asyncio
    async def test_unmapped_priority(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        document = await TicketDocumentFactory.create(
            db_session, ticket_type=TicketType.SCTASK, priority="4", resolved_at=datetime(2025, 3, 10, 12)
        )

        assert await compliance_service.calculate_ticket_sla(document.sys_id, TicketType.SCTASK) is None

    @pytest.mark.asyncio
    async def test_unsupported_ticket_type(self, compliance_service: ComplianceService):
        with pytest.raises(UnsupportedTicketTypeException):
            await compliance_service.calculate_ticket_sla("t1", "problem")

    @pytest.mark.asyncio
    async def test_metric_failure_is_skipped(
        self, db_session: AsyncSession, compliance_service: ComplianceService, monkeypatch, metrics
    ):
        await seed_incident_slas(db_session)
        document = await TicketDocumentFactory.create(
            db_session,
            priority="1",
            first_response_date=datetime(2025, 3, 10, 8, 30),
            resolved_at=datetime(2025, 3, 10, 14, 0)
        )
        original = compliance_service.sla_store.get_sla

        async def flaky_get_sla(ticket_type, priority, metric_type):
            if metric_type == MetricType.RESPONSE_TIME:
                raise RuntimeError("lookup failed")
            return await original(ticket_type, priority, metric_type)

        monkeypatch.setattr(compliance_service.sla_store, "get_sla", flaky_get_sla)

        status = await compliance_service.calculate_ticket_sla(document.sys_id, TicketType.INCIDENT)

        assert status.response_sla is None
        assert status.resolution_sla is not None
        assert metrics.registry.get_sample_value(
            "contract_sla_metric_failures_total", {"metric": "response_time"}
        ) == 1.0


class TestSlaMetrics:
    """Tests for period aggregates."""

    def test_percentage(self):
        assert percentage(0, 0) == 0.0
        assert percentage(2, 3) == 66.67
        assert percentage(3, 3) == 100.0

    def test_aggregate_empty(self, compliance_service: ComplianceService):
        metrics = compliance_service.aggregate_sla_metrics(
            [], datetime(2025, 3, 1), datetime(2025, 3, 31), TicketType.INCIDENT
        )

        assert metrics.total_tickets == 0
        assert metrics.compliance_percentage == 0.0
        assert metrics.metrics_by_priority == []

    @pytest.mark.asyncio
    async def test_generate_metrics_with_priority_breakdown(
        self, db_session: AsyncSession, compliance_service: ComplianceService
    ):
        await seed_incident_slas(db_session)
        await TicketDocumentFactory.create(
            db_session, priority="2", sys_created_on=datetime(2025, 3, 11, 8), resolved_at=datetime(2025, 3, 11, 10)
        )
        await TicketDocumentFactory.create(
            db_session, priority="1", sys_created_on=datetime(2025, 3, 10, 8), resolved_at=datetime(2025, 3, 10, 14)
        )
        await TicketDocumentFactory.create(
            db_session, priority="1", sys_created_on=datetime(2025, 3, 12, 8), resolved_at=datetime(2025, 3, 12, 10)
        )

        results = await compliance_service.generate_sla_metrics(datetime(2025, 3, 1), datetime(2025, 3, 31))

        assert len(results) == 1
        incident = results[0]
        assert incident.ticket_type == TicketType.INCIDENT
        assert incident.total_tickets == 3
        assert incident.compliant_tickets == 2
        assert incident.breached_tickets == 1
        assert incident.compliance_percentage == 66.67
        assert incident.total_penalty_percentage == 10
        assert incident.average_resolution_time == 3.33
        assert [p.priority for p in incident.metrics_by_priority] == [SlaPriority.P1, SlaPriority.P2]
        assert incident.metrics_by_priority[0].compliance_percentage == 50.0
        assert incident.metrics_by_priority[1].compliance_percentage == 100.0
        assert 0 <= incident.compliance_percentage <= 100

    @pytest.mark.asyncio
    async def test_generate_metrics_single_type(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        await TicketDocumentFactory.create(db_session, priority="1")

        assert await compliance_service.generate_sla_metrics(
            datetime(2025, 3, 1), datetime(2025, 3, 31), TicketType.CTASK
        ) == []


class TestDashboard:
    """Tests for breaches, trends, alerts and the dashboard."""

    async def _seed(self, db: AsyncSession):
        await seed_incident_slas(db)
        # Breached: six business hours against a four hour SLA
        await TicketDocumentFactory.create(
            db, number="INC-BREACH", priority="1",
            sys_created_on=datetime(2025, 3, 10, 8), resolved_at=datetime(2025, 3, 10, 14)
        )
        await TicketDocumentFactory.create(
            db, number="INC-OK", priority="2",
            sys_created_on=datetime(2025, 3, 14, 9), resolved_at=datetime(2025, 3, 14, 10)
        )

    @pytest.mark.asyncio
    async def test_recent_breaches(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await self._seed(db_session)

        breaches = await compliance_service.get_recent_breaches(days=7, limit=10)

        assert [b.ticket_number for b in breaches] == ["INC-BREACH"]
        assert await compliance_service.get_recent_breaches(days=2) == []

    @pytest.mark.asyncio
    async def test_trending_metrics(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await self._seed(db_session)

        trend = await compliance_service.get_trending_metrics(days=7)

        assert trend.period == "7d"
        assert trend.days[0] == "2025-03-08"
        assert trend.days[-1] == "2025-03-14"
        assert trend.volume_trend == [0, 0, 1, 0, 0, 0, 1]
        assert trend.compliance_trend[2] == 0.0
        assert trend.compliance_trend[6] == 100.0
        assert trend.penalty_trend[2] == 10

    @pytest.mark.asyncio
    async def test_alerts(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await seed_incident_slas(db_session)
        # Four hours Thursday afternoon plus three Friday morning
        await TicketDocumentFactory.create(
            db_session, priority="1",
            sys_created_on=datetime(2025, 3, 13, 13), resolved_at=datetime(2025, 3, 14, 11)
        )
        await TicketDocumentFactory.create(
            db_session, priority="2",
            sys_created_on=datetime(2025, 3, 14, 9), resolved_at=datetime(2025, 3, 14, 10)
        )

        alerts = {alert.id: alert for alert in await compliance_service.generate_sla_alerts()}

        assert set(alerts) == {"compliance-incident", "penalty-incident"}
        assert alerts["compliance-incident"].type == "warning"
        assert alerts["compliance-incident"].severity == "critical"
        assert alerts["penalty-incident"].type == "breach"
        assert alerts["penalty-incident"].severity == "critical"

    async def _seed_alert_window(self, db: AsyncSession, compliant: int, breached: int, penalty: float):
        """P2 incidents created this morning against a one hour resolution SLA."""
        await ContractualSlaFactory.create(
            db, metric_type=MetricType.RESOLUTION_TIME, priority=SlaPriority.P2,
            sla_hours=1, penalty_percentage=penalty
        )
        for _ in range(compliant):
            await TicketDocumentFactory.create(
                db, priority="2",
                sys_created_on=datetime(2025, 3, 14, 9), resolved_at=datetime(2025, 3, 14, 9, 30)
            )
        for _ in range(breached):
            await TicketDocumentFactory.create(
                db, priority="2",
                sys_created_on=datetime(2025, 3, 14, 9), resolved_at=datetime(2025, 3, 14, 11)
            )

    @pytest.mark.asyncio
    async def test_high_compliance_alert(self, db_session: AsyncSession, compliance_service: ComplianceService):
        # 75% compliance, 1.0 penalty
        await self._seed_alert_window(db_session, compliant=3, breached=1, penalty=1.0)

        alerts = await compliance_service.generate_sla_alerts()

        assert [alert.id for alert in alerts] == ["compliance-incident"]
        assert alerts[0].type == "warning"
        assert alerts[0].severity == "high"
        assert "75.0%" in alerts[0].message

    @pytest.mark.asyncio
    async def test_no_alerts_at_thresholds(self, db_session: AsyncSession, compliance_service: ComplianceService):
        # Exactly 80% compliance and exactly 2.0 summed penalty
        await self._seed_alert_window(db_session, compliant=4, breached=1, penalty=2.0)

        metrics = await compliance_service.generate_sla_metrics(
            datetime(2025, 3, 13, 12), datetime(2025, 3, 14, 12), TicketType.INCIDENT
        )
        assert metrics[0].compliance_percentage == 80.0
        assert metrics[0].total_penalty_percentage == 2.0
        assert await compliance_service.generate_sla_alerts() == []

    @pytest.mark.asyncio
    async def test_penalty_alert_above_threshold(self, db_session: AsyncSession, compliance_service: ComplianceService):
        # 90% compliance, 2.5 penalty
        await self._seed_alert_window(db_session, compliant=9, breached=1, penalty=2.5)

        alerts = await compliance_service.generate_sla_alerts()

        assert [alert.id for alert in alerts] == ["penalty-incident"]
        assert alerts[0].type == "breach"
        assert alerts[0].severity == "critical"

    @pytest.mark.asyncio
    async def test_no_alerts_without_tickets(self, compliance_service: ComplianceService):
        assert await compliance_service.generate_sla_alerts() == []

    @pytest.mark.asyncio
    async def test_dashboard(self, db_session: AsyncSession, compliance_service: ComplianceService):
        await self._seed(db_session)

        dashboard = await compliance_service.get_dashboard_data(datetime(2025, 3, 1), datetime(2025, 3, 15))

        assert dashboard.overall_metrics.total_tickets == 2
        assert dashboard.overall_metrics.compliant_tickets == 1
        assert dashboard.overall_metrics.breach_tickets == 1
        assert dashboard.overall_metrics.compliance_percentage == 50.0
        assert dashboard.overall_metrics.total_penalties == 10
        assert list(dashboard.by_ticket_type) == ["incident"]
        assert len(dashboard.recent_breaches) == 1
        assert len(dashboard.trending_metrics.days) == 30
        assert dashboard.alerts == []

    @pytest.mark.asyncio
    async def test_health_check(self, compliance_service: ComplianceService):
        assert await compliance_service.health_check() is True
