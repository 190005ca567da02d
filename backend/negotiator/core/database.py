"""
SQLAlchemy engine and session handling.

WHAT: Engine construction, session scopes, schema creation, and a health check
WHY: Negotiations, offers, preferences, agreements, and notifications live in one SQLite file
HOW: Sync SQLAlchemy 2 engine; WAL and foreign keys switched on per connection;
     in-memory URLs pin a single connection so all sessions share one database
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.logger import get_logger
from .config import settings

logger = get_logger(__name__)

Base = declarative_base()


def _enable_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    url = make_url(database_url)
    options = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    new_engine = create_engine(url, **options)
    if url.get_backend_name() == "sqlite":
        event.listen(new_engine, "connect", _enable_sqlite_pragmas)
    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    # Rows are converted to pydantic models after commit, so keep attributes loaded
    return sessionmaker(bind=bind, expire_on_commit=False, autoflush=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(session_factory: sessionmaker = SessionLocal):
    """Yield a session that commits on success and rolls back on any exception."""
    session: Session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = engine) -> None:
    from . import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=bind)
    logger.info(f"Schema ready ({len(Base.metadata.tables)} tables on {bind.url.render_as_string(hide_password=True)})")


def close_db(bind: Engine = engine) -> None:
    bind.dispose()
    logger.info("Database connections closed")


def ping_database(bind: Engine = engine) -> dict:
    """Run SELECT 1; report rather than raise."""
    url = bind.url.render_as_string(hide_password=True)
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database ping failed: {e}")
        return {"available": False, "url": url, "error": str(e)}
    return {"available": True, "url": url, "error": None}
