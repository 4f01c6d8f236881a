from fastapi import APIRouter

from factoring.api.v1.routers import (
    access,
    audit_logs,
    contracts,
    health,
    offers,
    requests,
    webhooks,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(access.router)
api_router.include_router(requests.router)
api_router.include_router(contracts.router)
api_router.include_router(offers.router)
api_router.include_router(audit_logs.router)
api_router.include_router(webhooks.router)

__all__ = ["api_router"]
