"""
Engine, session factory and the per-request session dependency.

The URL comes from settings.DATABASE_URL: Postgres in production, a SQLite
file in development and an in-memory SQLite database in tests.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import settings
from .models import Base

logger = logging.getLogger(__name__)


def _build_engine(url: str):
    if make_url(url).get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, pool_recycle=3600)

    options = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        # one connection, or every session would see its own empty database
        options["poolclass"] = StaticPool
    return create_engine(url, echo=settings.ENVIRONMENT == "development", **options)


engine = _build_engine(settings.DATABASE_URL)
logger.info(f"Database environment: {settings.ENVIRONMENT} ({engine.dialect.name})")


@event.listens_for(engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE clauses unless asked
    if engine.dialect.name == "sqlite":
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_tables_ready = False


def ensure_tables():
    global _tables_ready
    if not _tables_ready:
        Base.metadata.create_all(bind=engine)
        _tables_ready = True


def init_connection_pool():
    """
    Create missing tables at startup.
    """
    global _tables_ready
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Error creating tables: {str(e)}")
        raise
    _tables_ready = True
    logger.info(f"{len(Base.metadata.tables)} tables ready")


def close_all_connections():
    """
    Dispose of the engine at shutdown.
    """
    try:
        engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {str(e)}")


def get_db():
    """
    One session per request; every workflow function receives it explicitly.
    Usage: db: Session = Depends(get_db)
    """
    ensure_tables()
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Request failed, rolling back session: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


class ReportCursor:
    """
    Runs hand-written reporting SQL through the request's session.

    Queries use `%s` positional placeholders; they are rewritten to the
    named binds text() expects, so the same SQL runs on Postgres and SQLite.
    """

    def __init__(self, session: Session):
        self.session = session
        self._result = None

    @staticmethod
    def bind_positional(sql: str, params) -> tuple[str, dict]:
        chunks = sql.split("%s")
        if len(chunks) - 1 != len(params):
            raise ValueError(f"SQL has {len(chunks) - 1} placeholders but {len(params)} params were given")
        binds = {f"p{i}": value for i, value in enumerate(params)}
        named = chunks[0] + "".join(f":p{i}{chunk}" for i, chunk in enumerate(chunks[1:]))
        return named, binds

    def execute(self, sql: str, params=()):
        named, binds = self.bind_positional(sql, tuple(params))
        try:
            self._result = self.session.execute(text(named), binds)
        except Exception as e:
            logger.error(f"Error executing report query: {str(e)}")
            raise

    def fetchall(self) -> list[dict]:
        if self._result is None:
            return []
        return [dict(row._mapping) for row in self._result]

    def fetchone(self) -> dict | None:
        if self._result is None:
            return None
        row = self._result.first()
        return dict(row._mapping) if row else None


@contextmanager
def get_cursor(db: Session):
    """
    Usage:
        with get_cursor(db) as cur:
            cur.execute("SELECT id FROM tender_assigns WHERE status = %s", ("open",))
            rows = cur.fetchall()
    """
    yield ReportCursor(db)
