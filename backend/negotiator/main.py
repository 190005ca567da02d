"""
Application factory.

WHAT: Build the FastAPI app and wire the negotiation core
WHY: One repository, governor, provider, and orchestrator per process; tests swap
     in an in-memory database and a scripted provider
HOW: create_app() with a lifespan that populates app.state and tears it down in reverse
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.router import API_PREFIX, api_router
from .core.config import settings
from .core.database import SessionLocal, close_db, engine, init_db
from .core.repository import SqlNegotiationRepository
from .llm.provider import CompletionProvider
from .llm.provider_factory import get_provider
from .middleware.error_handler import register_exception_handlers
from .services.market_data import MarketDataProvider
from .services.negotiation_orchestrator import NegotiationOrchestrator
from .services.notifications import DatabaseNotificationDispatcher
from .services.request_governor import RequestGovernor
from .utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


def build_orchestrator(
    repository: SqlNegotiationRepository,
    governor: RequestGovernor,
    provider: CompletionProvider | None = None,
) -> NegotiationOrchestrator:
    return NegotiationOrchestrator(
        repository,
        DatabaseNotificationDispatcher(repository),
        MarketDataProvider(repository, governor, provider),
        next_round_delay=settings.NEXT_ROUND_DELAY_SECONDS,
        max_rounds=settings.MAX_NEGOTIATION_ROUNDS,
    )


def create_app(
    *,
    db_engine=None,
    session_factory=None,
    provider: CompletionProvider | None = None,
    governor: RequestGovernor | None = None,
) -> FastAPI:
    """Keyword arguments replace the process-wide engine, session factory, provider, and governor."""
    db_engine = db_engine if db_engine is not None else engine
    session_factory = session_factory if session_factory is not None else SessionLocal

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(db_engine)
        repository = SqlNegotiationRepository(session_factory)
        llm = provider if provider is not None else get_provider()
        request_governor = governor if governor is not None else RequestGovernor()

        app.state.engine = db_engine
        app.state.repository = repository
        app.state.llm_provider = llm
        app.state.governor = request_governor
        app.state.orchestrator = build_orchestrator(repository, request_governor, llm)
        logger.info(
            f"{settings.APP_NAME} v{settings.APP_VERSION} started "
            f"(llm={'on' if llm is not None else 'off'}, budget={request_governor.max_requests})"
        )
        try:
            yield
        finally:
            await app.state.orchestrator.shutdown()
            if llm is not None:
                await llm.close()
            close_db(db_engine)
            logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix=API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"app": settings.APP_NAME, "version": settings.APP_VERSION, "api": API_PREFIX}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("negotiator.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
