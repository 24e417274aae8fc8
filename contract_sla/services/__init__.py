"""
Contract SLA Services Module

Business hours arithmetic, contractual SLA lookup, compliance and
violation services.
"""

from contract_sla.services.business_hours import BusinessHoursCalculator, BusinessHoursConfig, DEFAULT_BUSINESS_HOURS
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.compliance_service import ComplianceService
from contract_sla.services.support_group_catalog import SupportGroupCatalog
from contract_sla.services.ticket_source import TicketSource
from contract_sla.services.violation_service import ViolationService
from contract_sla.services.metrics_service import MetricsCollector, metrics_collector

__all__ = [
    "BusinessHoursCalculator",
    "BusinessHoursConfig",
    "DEFAULT_BUSINESS_HOURS",
    "SlaConfigurationStore",
    "ComplianceService",
    "SupportGroupCatalog",
    "TicketSource",
    "ViolationService",
    "MetricsCollector",
    "metrics_collector",
]
