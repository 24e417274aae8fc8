"""
Compliance Service Module

Per-ticket SLA compliance, period metrics and dashboard data.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Union
import logging

from contract_sla.core.clock import business_now
from contract_sla.core.config import Settings, settings
from contract_sla.models.sla import TicketType, MetricType, SlaPriority
from contract_sla.schemas.sla import (
    ComplianceResult,
    TicketSlaStatus,
    SlaMetrics,
    SlaPriorityMetrics,
    SlaDashboardData,
    OverallMetrics,
    TrendingMetrics,
    SlaAlert,
)
from contract_sla.schemas.ticket import TicketSnapshot
from contract_sla.services.business_hours import BusinessHoursCalculator
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector
from contract_sla.services.priority_mapping import map_priority, parse_ticket_type
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.ticket_source import TicketSource


logger = logging.getLogger(__name__)

_PRIORITY_ORDER = {priority: index for index, priority in enumerate(SlaPriority)}


def percentage(numerator: float, denominator: float) -> float:
    """numerator/denominator as a percentage rounded to 2 decimals; 0 for a zero denominator."""
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _average(values: List[float]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def _summarize(statuses: List[TicketSlaStatus]) -> Dict[str, float]:
    total = len(statuses)
    compliant = sum(1 for s in statuses if s.overall_compliance)
    return {
        "total_tickets": total,
        "compliant_tickets": compliant,
        "breached_tickets": total - compliant,
        "compliance_percentage": percentage(compliant, total),
        "penalty_percentage": round(sum(s.total_penalty_percentage for s in statuses), 2),
        "average_response_time": _average(
            [s.response_sla.actual_hours for s in statuses if s.response_sla is not None]
        ),
        "average_resolution_time": _average(
            [s.resolution_sla.actual_hours for s in statuses if s.resolution_sla is not None]
        ),
    }


class ComplianceService:
    """
    Service for SLA compliance calculations.

    Provides methods for:
    - Calculating response and resolution compliance of a ticket
    - Aggregating compliance metrics over a period
    - Building dashboard data, trends and alerts

    Args:
        sla_store: Contractual SLA lookup
        ticket_source: Ticket reader
        calculator: Business hours calculator shared with the other services
        metrics: Collector for failure counters
        config: Settings with dashboard windows and alert thresholds
        clock: Returns "now" as naive business-local time
    """

    def __init__(
        self,
        sla_store: SlaConfigurationStore,
        ticket_source: TicketSource,
        calculator: BusinessHoursCalculator,
        metrics: Optional[MetricsCollector] = None,
        config: Settings = settings,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.sla_store = sla_store
        self.ticket_source = ticket_source
        self.calculator = calculator
        self._metrics = metrics or metrics_collector
        self._config = config
        self._clock = clock

    def _now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return business_now(self.calculator.config.timezone)

    # ------------------------------------------------------------------
    # Single ticket
    # ------------------------------------------------------------------

    async def calculate_compliance(
        self,
        ticket_id: str,
        ticket_type: TicketType,
        priority: SlaPriority,
        metric_type: MetricType,
        start: datetime,
        end: datetime
    ) -> Optional[ComplianceResult]:
        """
        Measure one SLA metric against its contractual threshold.

        Elapsed time counts business hours only when the SLA row says so.

        Args:
            ticket_id: Ticket sys_id
            ticket_type: Ticket type
            priority: Mapped SLA priority
            metric_type: Response or resolution
            start: Clock start (ticket creation)
            end: Clock stop (first response, resolution or closure)

        Returns:
            ComplianceResult, or None when no SLA applies
        """
        sla = await self.sla_store.get_sla(ticket_type, priority, metric_type)
        if sla is None:
            logger.warning(
                f"No SLA found for {ticket_type.value}/{priority.value}/{metric_type.value}",
                extra={"ticket_id": ticket_id}
            )
            return None

        actual_hours = self.calculator.elapsed_hours(start, end, sla.business_hours_only)
        is_compliant = actual_hours <= sla.sla_hours

        return ComplianceResult(
            ticket_id=ticket_id,
            ticket_type=ticket_type,
            priority=priority,
            metric_type=metric_type,
            sla_hours=sla.sla_hours,
            actual_hours=actual_hours,
            is_compliant=is_compliant,
            breach_hours=0.0 if is_compliant else round(actual_hours - sla.sla_hours, 2),
            penalty_percentage=0.0 if is_compliant else sla.penalty_percentage,
            business_hours_only=sla.business_hours_only,
            calculated_at=self._now()
        )

    async def _metric_result(
        self,
        ticket: TicketSnapshot,
        priority: SlaPriority,
        metric_type: MetricType,
        end: Optional[datetime]
    ) -> Optional[ComplianceResult]:
        if end is None:
            return None
        try:
            return await self.calculate_compliance(
                ticket.sys_id, ticket.ticket_type, priority, metric_type, ticket.sys_created_on, end
            )
        except Exception as e:
            self._metrics.record_metric_failure(metric_type.value)
            logger.error(
                f"Error calculating {metric_type.value} for ticket {ticket.sys_id}: {e}",
                exc_info=True
            )
            return None

    async def ticket_status(self, ticket: TicketSnapshot) -> Optional[TicketSlaStatus]:
        """
        Compliance status of an already loaded ticket.

        Returns:
            TicketSlaStatus, or None when the priority has no SLA mapping
        """
        mapping = map_priority(ticket.priority, ticket.ticket_type)
        if not mapping.is_mapped:
            logger.warning(
                f"Invalid priority {mapping.raw!r} for {ticket.ticket_type.value} ticket {ticket.sys_id}",
                extra={"ticket_id": ticket.sys_id}
            )
            return None

        resolved_at = ticket.resolution_timestamp
        response_sla = await self._metric_result(
            ticket, mapping.priority, MetricType.RESPONSE_TIME, ticket.first_response_date
        )
        resolution_sla = await self._metric_result(
            ticket, mapping.priority, MetricType.RESOLUTION_TIME, resolved_at
        )
        results = [r for r in (response_sla, resolution_sla) if r is not None]

        return TicketSlaStatus(
            ticket_id=ticket.sys_id,
            ticket_number=ticket.number,
            ticket_type=ticket.ticket_type,
            priority=mapping.priority,
            created_at=ticket.sys_created_on,
            first_response_at=ticket.first_response_date,
            resolved_at=resolved_at,
            response_sla=response_sla,
            resolution_sla=resolution_sla,
            overall_compliance=all(r.is_compliant for r in results),
            total_penalty_percentage=round(sum(r.penalty_percentage for r in results), 2)
        )

    async def calculate_ticket_sla(
        self,
        ticket_id: str,
        ticket_type: Union[TicketType, str]
    ) -> Optional[TicketSlaStatus]:
        """
        Calculate SLA compliance for a specific ticket.

        Args:
            ticket_id: Ticket sys_id
            ticket_type: incident, ctask or sctask

        Returns:
            TicketSlaStatus, or None when the ticket is missing or its
            priority cannot be mapped

        Raises:
            UnsupportedTicketTypeException: Unknown ticket type
        """
        ticket_type = parse_ticket_type(ticket_type)
        ticket = await self.ticket_source.get_ticket(ticket_id, ticket_type)
        if ticket is None:
            logger.warning(f"Ticket not found: {ticket_type.value} {ticket_id}")
            return None
        return await self.ticket_status(ticket)

    async def _statuses(self, tickets: Iterable[TicketSnapshot]) -> List[TicketSlaStatus]:
        statuses = []
        for ticket in tickets:
            status = await self.ticket_status(ticket)
            if status is not None:
                statuses.append(status)
        return statuses

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def aggregate_sla_metrics(
        self,
        statuses: List[TicketSlaStatus],
        start: datetime,
        end: datetime,
        ticket_type: TicketType
    ) -> SlaMetrics:
        """Aggregate ticket statuses into period metrics with a per-priority breakdown."""
        by_priority: Dict[SlaPriority, List[TicketSlaStatus]] = defaultdict(list)
        for status in statuses:
            by_priority[status.priority].append(status)

        summary = _summarize(statuses)
        return SlaMetrics(
            period_start=start,
            period_end=end,
            ticket_type=ticket_type,
            total_tickets=summary["total_tickets"],
            compliant_tickets=summary["compliant_tickets"],
            breached_tickets=summary["breached_tickets"],
            compliance_percentage=summary["compliance_percentage"],
            total_penalty_percentage=summary["penalty_percentage"],
            average_response_time=summary["average_response_time"],
            average_resolution_time=summary["average_resolution_time"],
            metrics_by_priority=[
                SlaPriorityMetrics(priority=priority, **_summarize(by_priority[priority]))
                for priority in sorted(by_priority, key=_PRIORITY_ORDER.get)
            ]
        )

    async def generate_sla_metrics(
        self,
        start: datetime,
        end: datetime,
        ticket_type: Optional[Union[TicketType, str]] = None
    ) -> List[SlaMetrics]:
        """
        Compliance metrics of tickets created in [start, end].

        Ticket types without tickets in the period are left out.
        """
        ticket_types = [parse_ticket_type(ticket_type)] if ticket_type else list(TicketType)

        results = []
        for current_type in ticket_types:
            tickets = await self.ticket_source.list_created_between(start, end, current_type)
            if not tickets:
                continue
            statuses = await self._statuses(tickets)
            results.append(self.aggregate_sla_metrics(statuses, start, end, current_type))
        return results

    async def get_recent_breaches(
        self,
        days: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[TicketSlaStatus]:
        """Non-compliant tickets created in the last days, newest first."""
        days = days if days is not None else self._config.RECENT_BREACH_DAYS
        limit = limit if limit is not None else self._config.RECENT_BREACH_LIMIT
        now = self._now()

        breaches = []
        for ticket_type in TicketType:
            tickets = await self.ticket_source.list_created_between(now - timedelta(days=days), now, ticket_type)
            for status in await self._statuses(tickets):
                if not status.overall_compliance:
                    breaches.append(status)

        breaches.sort(key=lambda s: s.created_at, reverse=True)
        return breaches[:limit]

    async def get_trending_metrics(self, days: Optional[int] = None) -> TrendingMetrics:
        """Daily compliance, penalty and volume series over the last days, oldest first."""
        days = days if days is not None else self._config.DASHBOARD_TREND_DAYS
        now = self._now()
        first_day = now.date() - timedelta(days=days - 1)
        window_start = datetime.combine(first_day, datetime.min.time())

        volume: Dict = defaultdict(int)
        statuses_by_day: Dict = defaultdict(list)
        for ticket_type in TicketType:
            tickets = await self.ticket_source.list_created_between(window_start, now, ticket_type)
            for ticket in tickets:
                volume[ticket.sys_created_on.date()] += 1
            for status in await self._statuses(tickets):
                statuses_by_day[status.created_at.date()].append(status)

        trend = TrendingMetrics(period=f"{days}d")
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            summary = _summarize(statuses_by_day.get(day, []))
            trend.days.append(day.isoformat())
            trend.compliance_trend.append(summary["compliance_percentage"])
            trend.penalty_trend.append(summary["penalty_percentage"])
            trend.volume_trend.append(volume.get(day, 0))
        return trend

    async def generate_sla_alerts(self) -> List[SlaAlert]:
        """
        Alerts on the last 24 hours.

        A ticket type gets a compliance warning below the warning threshold
        (critical below the critical threshold) and a penalty breach alert
        when its summed penalty exceeds the penalty threshold.
        """
        now = self._now()
        alerts = []

        for metrics in await self.generate_sla_metrics(now - timedelta(hours=24), now):
            if metrics.total_tickets == 0:
                continue
            label = metrics.ticket_type.value.upper()

            if metrics.compliance_percentage < self._config.COMPLIANCE_WARNING_THRESHOLD:
                critical = metrics.compliance_percentage < self._config.COMPLIANCE_CRITICAL_THRESHOLD
                alerts.append(SlaAlert(
                    id=f"compliance-{metrics.ticket_type.value}",
                    type="warning",
                    severity="critical" if critical else "high",
                    ticket_type=metrics.ticket_type,
                    message=f"{label} SLA compliance is {metrics.compliance_percentage:.1f}% (last 24h)",
                    created_at=now
                ))

            if metrics.total_penalty_percentage > self._config.PENALTY_ALERT_THRESHOLD:
                alerts.append(SlaAlert(
                    id=f"penalty-{metrics.ticket_type.value}",
                    type="breach",
                    severity="critical",
                    ticket_type=metrics.ticket_type,
                    message=f"High penalty rate: {metrics.total_penalty_percentage:.2f}% for {label}",
                    created_at=now
                ))

        return alerts

    async def get_dashboard_data(self, start: datetime, end: datetime) -> SlaDashboardData:
        """
        Get comprehensive SLA dashboard data.

        Args:
            start: Period start
            end: Period end

        Returns:
            Overall and per-type metrics, recent breaches, trends and alerts
        """
        by_ticket_type = {}
        overall = OverallMetrics()
        for metrics in await self.generate_sla_metrics(start, end):
            by_ticket_type[metrics.ticket_type.value] = metrics
            overall.total_tickets += metrics.total_tickets
            overall.compliant_tickets += metrics.compliant_tickets
            overall.total_penalties += metrics.total_penalty_percentage

        overall.breach_tickets = overall.total_tickets - overall.compliant_tickets
        overall.compliance_percentage = percentage(overall.compliant_tickets, overall.total_tickets)
        overall.total_penalties = round(overall.total_penalties, 2)

        return SlaDashboardData(
            overall_metrics=overall,
            by_ticket_type=by_ticket_type,
            recent_breaches=await self.get_recent_breaches(),
            trending_metrics=await self.get_trending_metrics(),
            alerts=await self.generate_sla_alerts()
        )

    async def health_check(self) -> bool:
        return await self.sla_store.health_check() and await self.ticket_source.health_check()
