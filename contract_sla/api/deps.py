from fastapi import Request

from contract_sla.core.components import EngineComponents
from contract_sla.services.compliance_service import ComplianceService
from contract_sla.services.sla_config_service import SlaConfigurationStore
from contract_sla.services.violation_service import ViolationService


def get_components(request: Request) -> EngineComponents:
    return request.app.state.components


def get_sla_store(request: Request) -> SlaConfigurationStore:
    return get_components(request).sla_store


def get_compliance_service(request: Request) -> ComplianceService:
    return get_components(request).compliance_service


def get_violation_service(request: Request) -> ViolationService:
    return get_components(request).violation_service
