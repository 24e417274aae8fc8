from fastapi import APIRouter
from contract_sla.api.v1 import sla, violations

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(sla.router, prefix="/sla", tags=["sla"])
api_router.include_router(violations.router, prefix="/violations", tags=["violations"])
