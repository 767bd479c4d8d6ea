"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from leadline.api.v1.endpoints import (
    webhooks,
    calls,
    scheduler,
    health,
)

api_router = APIRouter()

api_router.include_router(webhooks.router)
api_router.include_router(calls.router)
api_router.include_router(scheduler.router)
api_router.include_router(health.router)
