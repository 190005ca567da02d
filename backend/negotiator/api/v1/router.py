"""Version 1 HTTP routes, mounted by the app factory under API_PREFIX."""

from fastapi import APIRouter

from .endpoints import agents, negotiation, status

API_PREFIX = "/api/v1"

api_router = APIRouter()
api_router.include_router(status.router, tags=["status"])
api_router.include_router(negotiation.router, prefix="/negotiations", tags=["negotiations"])
api_router.include_router(agents.router, prefix="/agents", tags=["agents"])
