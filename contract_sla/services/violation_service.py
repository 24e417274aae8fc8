"""
Violation Service Module

Evaluates the contractual violation rules of a ticket, combines them under
a strict or lenient policy, computes the penalty and keeps the latest
verdict per ticket for audit and statistics.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
import logging
import time

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contract_sla.core.clock import utcnow, to_naive_utc
from contract_sla.core.exceptions import ResourceNotFoundException
from contract_sla.models.sla import TicketType, MetricType
from contract_sla.models.support_group import SupportGroup
from contract_sla.models.violation import ViolationTracking, ViolationSeverity
from contract_sla.schemas.sla import ComplianceResult
from contract_sla.schemas.ticket import TicketSnapshot
from contract_sla.schemas.violation import (
    ViolationValidationRules,
    ViolationReason,
    ViolationVerdict,
    ViolationStatistics,
    AnalysisPeriod,
)
from contract_sla.services.compliance_service import ComplianceService, percentage
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector
from contract_sla.services.priority_mapping import PriorityMapping, map_priority, parse_ticket_type
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.support_group_catalog import SupportGroupCatalog
from contract_sla.services.ticket_source import TicketSource


logger = logging.getLogger(__name__)

GROUP_CLOSURE_RULE = "group_closure_validation"
SLA_BREACH_RULE = "sla_breach_validation"
VIOLATION_MARKING_RULE = "violation_marking_validation"


def combine_rule_outcomes(reasons: List[ViolationReason], strict_validation: bool) -> bool:
    """
    Decide whether a ticket is violated from its rule outcomes.

    Strict: violated only when every evaluated rule is non-compliant.
    Lenient: violated when any evaluated rule is non-compliant.
    No evaluated rule means not violated under both policies.
    """
    if not reasons:
        return False
    failures = [not reason.is_compliant for reason in reasons]
    return all(failures) if strict_validation else any(failures)


class ViolationService:
    """
    Service for contractual violation validation.

    Provides methods for:
    - Validating a ticket against the group closure, SLA breach and
      violation marking rules
    - Persisting the latest verdict per ticket
    - Reporting violation statistics over a period

    Args:
        session_factory: Callable returning a new AsyncSession
        ticket_source: Ticket reader
        sla_store: Contractual SLA lookup
        compliance_service: Breach detection for the SLA breach rule
        group_catalog: Authorized support groups
        metrics: Collector for validation and failure counters
        clock: Naive UTC clock for verdict and tracking timestamps
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        ticket_source: TicketSource,
        sla_store: SlaConfigurationStore,
        compliance_service: ComplianceService,
        group_catalog: SupportGroupCatalog,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self._session_factory = session_factory
        self.ticket_source = ticket_source
        self.sla_store = sla_store
        self.compliance_service = compliance_service
        self.group_catalog = group_catalog
        self._metrics = metrics or metrics_collector
        self._clock = clock

    async def initialize(self) -> None:
        """Pre-load the support group catalog. Errors propagate."""
        await self.group_catalog.refresh()
        logger.info("Violation service initialized")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_contractual_violation(
        self,
        ticket_id: str,
        ticket_type: Union[TicketType, str],
        rules: ViolationValidationRules
    ) -> ViolationVerdict:
        """
        Validate contractual violation for a specific ticket.

        Args:
            ticket_id: Ticket sys_id
            ticket_type: incident, ctask or sctask
            rules: Enabled rules and the strict/lenient combination policy

        Returns:
            ViolationVerdict, also stored as the ticket's tracking record

        Raises:
            UnsupportedTicketTypeException: Unknown ticket type
            ResourceNotFoundException: Ticket does not exist
        """
        started = time.perf_counter()
        ticket_type = parse_ticket_type(ticket_type)
        logger.info(f"Validating violation for {ticket_type.value} {ticket_id}")

        ticket = await self.ticket_source.get_ticket(ticket_id, ticket_type)
        if ticket is None:
            raise ResourceNotFoundException(f"{ticket_type.value} ticket", ticket_id)

        mapping = map_priority(ticket.priority, ticket_type)

        reasons: List[ViolationReason] = []
        if rules.validate_group_closure:
            reasons.append(await self._group_closure_reason(ticket))
        if rules.validate_sla_breach:
            reasons.append(await self._sla_breach_reason(ticket, mapping))
        if rules.validate_violation_marking:
            reasons.append(self._violation_marking_reason(ticket))

        is_violated = combine_rule_outcomes(reasons, rules.strict_validation)
        penalty = await self._penalty_percentage(ticket, mapping) if is_violated else 0.0

        verdict = ViolationVerdict(
            ticket_id=ticket.sys_id,
            ticket_number=ticket.number,
            ticket_type=ticket_type,
            assignment_group=ticket.assignment_group.display_value or ticket.assignment_group.value,
            is_violated=is_violated,
            strict_validation=rules.strict_validation,
            violation_reasons=reasons,
            penalty_percentage=penalty,
            financial_impact=penalty,
            validation_timestamp=self._clock()
        )

        await self._store_verdict(verdict)

        self._metrics.record_validation(ticket_type.value, is_violated, time.perf_counter() - started)
        logger.info(
            f"Validation completed for {ticket_id}: {'VIOLATED' if is_violated else 'COMPLIANT'}",
            extra={"ticket_id": ticket_id, "ticket_type": ticket_type.value, "penalty_percentage": penalty}
        )
        return verdict

    def _rule_failed(self, rule: str, ticket: TicketSnapshot, error: Exception) -> None:
        self._metrics.record_rule_failure(rule)
        logger.error(f"Error evaluating {rule} for ticket {ticket.sys_id}: {error}", exc_info=True)

    async def _group_closure_reason(self, ticket: TicketSnapshot) -> ViolationReason:
        """Rule 1: the ticket's assignment group is an authorized support group."""
        try:
            details = await self._validate_group_closure(ticket)
        except Exception as e:
            self._rule_failed(GROUP_CLOSURE_RULE, ticket, e)
            details = {"closed_by_group": False, "error": str(e)}

        closed_by_group = details["closed_by_group"]
        return ViolationReason(
            rule_name=GROUP_CLOSURE_RULE,
            rule_description="Ticket must be closed by an authorized support group",
            is_compliant=closed_by_group,
            severity=ViolationSeverity.LOW if closed_by_group else ViolationSeverity.HIGH,
            validation_details=details
        )

    async def _validate_group_closure(self, ticket: TicketSnapshot) -> Dict[str, Any]:
        group_id = ticket.assignment_group.value
        if not group_id:
            return {
                "closed_by_group": False,
                "assignment_group_id": None,
                "assignment_group_name": None,
            }

        group = await self.group_catalog.get_group(group_id)
        return {
            "closed_by_group": group is not None,
            "assignment_group_id": group_id,
            "assignment_group_name": (group.name if group else None) or ticket.assignment_group.display_value,
            "closure_timestamp": ticket.closed_at,
            "closure_state": ticket.state,
        }

    async def _sla_breach_reason(self, ticket: TicketSnapshot, mapping: PriorityMapping) -> ViolationReason:
        """Rule 2: neither response nor resolution time exceeded the contract."""
        try:
            details = await self._validate_sla_breach(ticket, mapping)
        except Exception as e:
            self._rule_failed(SLA_BREACH_RULE, ticket, e)
            details = {
                "has_sla_breach": False,
                "response_time_breach": False,
                "resolution_time_breach": False,
                "breach_details": {},
                "error": str(e),
            }

        has_breach = details["has_sla_breach"]
        return ViolationReason(
            rule_name=SLA_BREACH_RULE,
            rule_description="Ticket must meet contractual SLA conditions",
            is_compliant=not has_breach,
            severity=ViolationSeverity.CRITICAL if has_breach else ViolationSeverity.LOW,
            validation_details=details
        )

    async def _validate_sla_breach(self, ticket: TicketSnapshot, mapping: PriorityMapping) -> Dict[str, Any]:
        response_breach = False
        resolution_breach = False
        breach_details: Dict[str, float] = {}

        if not mapping.is_mapped:
            logger.warning(
                f"Invalid priority {mapping.raw!r} for {ticket.ticket_type.value} ticket {ticket.sys_id}, "
                f"SLA breach not evaluated"
            )
        else:
            # Without an explicit first response, the first update stands in for it
            response = await self._breach_check(
                ticket, mapping, MetricType.RESPONSE_TIME, ticket.first_response_date or ticket.sys_updated_on
            )
            if response is not None:
                response_breach = not response.is_compliant
                breach_details["expected_response_hours"] = response.sla_hours
                breach_details["actual_response_hours"] = response.actual_hours

            resolution = await self._breach_check(
                ticket, mapping, MetricType.RESOLUTION_TIME, ticket.resolution_timestamp
            )
            if resolution is not None:
                resolution_breach = not resolution.is_compliant
                breach_details["expected_resolution_hours"] = resolution.sla_hours
                breach_details["actual_resolution_hours"] = resolution.actual_hours

        return {
            "has_sla_breach": response_breach or resolution_breach,
            "response_time_breach": response_breach,
            "resolution_time_breach": resolution_breach,
            "breach_details": breach_details,
        }

    async def _breach_check(
        self,
        ticket: TicketSnapshot,
        mapping: PriorityMapping,
        metric_type: MetricType,
        end: Optional[datetime]
    ) -> Optional[ComplianceResult]:
        if end is None:
            return None
        return await self.compliance_service.calculate_compliance(
            ticket.sys_id, ticket.ticket_type, mapping.priority, metric_type, ticket.sys_created_on, end
        )

    def _violation_marking_reason(self, ticket: TicketSnapshot) -> ViolationReason:
        """Rule 3: compliant only when the ticket is explicitly flagged as not violated."""
        is_marked = ticket.contractual_violation is True
        is_compliant = ticket.contractual_violation is False
        return ViolationReason(
            rule_name=VIOLATION_MARKING_RULE,
            rule_description="Ticket must not be marked as contractually violated",
            is_compliant=is_compliant,
            severity=ViolationSeverity.LOW if is_compliant else ViolationSeverity.MEDIUM,
            validation_details={
                "is_marked_as_violated": is_marked,
                "violation_field_value": ticket.contractual_violation,
                "marking_timestamp": ticket.sys_updated_on if is_marked else None,
            }
        )

    async def _penalty_percentage(self, ticket: TicketSnapshot, mapping: PriorityMapping) -> float:
        """Penalty of the resolution-time SLA; 0 when none applies."""
        if not mapping.is_mapped:
            return 0.0
        try:
            sla = await self.sla_store.get_sla(ticket.ticket_type, mapping.priority, MetricType.RESOLUTION_TIME)
        except Exception as e:
            logger.error(f"Error looking up penalty for ticket {ticket.sys_id}: {e}", exc_info=True)
            return 0.0
        return sla.penalty_percentage if sla is not None else 0.0

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _upsert_tracking(self, verdict: ViolationVerdict) -> None:
        now = self._clock()
        async with self._session_factory() as session:
            result = await session.execute(
                select(ViolationTracking).where(ViolationTracking.ticket_sys_id == verdict.ticket_id)
            )
            record = result.scalar_one_or_none()

            if record is None:
                record = ViolationTracking(ticket_sys_id=verdict.ticket_id, created_at=now)
                session.add(record)

            record.ticket_number = verdict.ticket_number
            record.ticket_type = verdict.ticket_type.value
            record.is_violated = verdict.is_violated
            record.penalty_percentage = verdict.penalty_percentage
            record.financial_impact = verdict.financial_impact
            record.violation_result = verdict.model_dump(mode="json")
            record.processed = True
            record.financial_impact_calculated = bool(verdict.financial_impact)
            record.updated_at = now

            await session.commit()

    async def _store_verdict(self, verdict: ViolationVerdict) -> None:
        """Upsert the tracking record; a storage failure is logged, not raised."""
        try:
            try:
                await self._upsert_tracking(verdict)
            except IntegrityError:
                # A concurrent evaluation inserted the row first
                await self._upsert_tracking(verdict)
        except SQLAlchemyError as e:
            logger.error(f"Error storing violation result for {verdict.ticket_id}: {e}", exc_info=True)

    async def get_violation(self, ticket_sys_id: str) -> ViolationVerdict:
        """
        Read back the stored verdict of a ticket.

        Raises:
            ResourceNotFoundException: The ticket was never validated
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(ViolationTracking).where(ViolationTracking.ticket_sys_id == ticket_sys_id)
            )
            record = result.scalar_one_or_none()

        if record is None:
            raise ResourceNotFoundException("Violation tracking record", ticket_sys_id)
        return ViolationVerdict.model_validate(record.violation_result)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def generate_violation_statistics(self, start: datetime, end: datetime) -> ViolationStatistics:
        """
        Statistics over processed verdicts last evaluated in [start, end].

        Args:
            start: Period start (naive UTC or aware)
            end: Period end (naive UTC or aware)

        Returns:
            ViolationStatistics
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(ViolationTracking).where(
                    and_(
                        ViolationTracking.updated_at >= to_naive_utc(start),
                        ViolationTracking.updated_at <= to_naive_utc(end),
                        ViolationTracking.processed == True
                    )
                )
            )
            records = result.scalars().all()

        violated = [record for record in records if record.is_violated]

        by_ticket_type: Dict[str, int] = {}
        by_severity: Dict[str, int] = {}
        by_group: Dict[str, int] = {}
        for record in violated:
            verdict = ViolationVerdict.model_validate(record.violation_result)
            by_ticket_type[record.ticket_type] = by_ticket_type.get(record.ticket_type, 0) + 1

            group = verdict.assignment_group or "unassigned"
            by_group[group] = by_group.get(group, 0) + 1

            for reason in verdict.violation_reasons:
                if not reason.is_compliant:
                    by_severity[reason.severity.value] = by_severity.get(reason.severity.value, 0) + 1

        return ViolationStatistics(
            total_tickets_analyzed=len(records),
            total_violations_found=len(violated),
            violation_rate_percentage=percentage(len(violated), len(records)),
            violations_by_ticket_type=by_ticket_type,
            violations_by_severity=by_severity,
            violations_by_group=by_group,
            total_financial_impact=round(sum(record.financial_impact or 0.0 for record in violated), 2),
            analysis_period=AnalysisPeriod(start_date=start, end_date=end)
        )

    def get_cache_stats(self) -> Dict[str, Any]:
        return {"support_groups": self.group_catalog.get_cache_stats()}

    async def health_check(self) -> bool:
        """True when the support group and violation tracking tables can be queried."""
        try:
            async with self._session_factory() as session:
                await session.execute(select(SupportGroup.id).limit(1))
                await session.execute(select(ViolationTracking.id).limit(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Violation service health check failed: {e}", exc_info=True)
            return False
