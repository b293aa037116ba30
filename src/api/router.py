"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from src.api.pabbly_webhooks import router as pabbly_webhooks_router
from src.api.pabbly import router as pabbly_router
from src.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(pabbly_webhooks_router)
api_router.include_router(pabbly_router)
api_router.include_router(health_router)
