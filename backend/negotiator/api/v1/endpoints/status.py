"""
Status and health check endpoints.

WHAT: Health of the database, the LLM provider, and the request budget
WHY: Quick diagnostics for the app and ops
HOW: FastAPI endpoints reading app.state and pinging dependencies
"""

from dataclasses import asdict

from fastapi import APIRouter, Request

from ....core.config import settings
from ....core.database import ping_database
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/status")
async def service_status(request: Request):
    """
    Check service status.

    Returns:
        JSON with database status, governor budget usage, and provider status
    """
    provider = request.app.state.llm_provider
    if provider is None:
        llm_dict = {"enabled": False, "available": False, "error": None}
    else:
        try:
            llm_status = await provider.health()
            llm_dict = {"enabled": True, **asdict(llm_status)}
        except Exception as e:
            logger.error(f"Failed to get LLM status: {e}")
            llm_dict = {"enabled": True, "available": False, "error": str(e)}

    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": ping_database(request.app.state.engine),
        "governor": asdict(request.app.state.governor.status()),
        "llm": llm_dict,
    }
