"""API routes."""

from fastapi import APIRouter

from app.api.routes import calls, telephony, telephony_webhooks

api_router = APIRouter()

# Public routes (no auth required; signature checked by the service)
api_router.include_router(telephony_webhooks.router, prefix="/telephony", tags=["telephony-webhooks"])

# Protected routes (auth required, except the OAuth callback)
api_router.include_router(telephony.router, prefix="/telephony", tags=["telephony"])
api_router.include_router(calls.router, prefix="/calls", tags=["calls"])
