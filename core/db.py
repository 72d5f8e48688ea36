import logging
import os
import re
import ssl
import time
import urllib.parse
from typing import Optional, Tuple

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv(override=False)

TESTING = os.getenv("TESTING", "false").lower() == "true"

_PG_URL_PATTERN = re.compile(r"postgres(?:ql)?://([^:]+):([^@]+)@([^:/]+):?(\d*)/?([^?]*)")

slow_query_logger = logging.getLogger("db.slow_query")


def normalize_database_url(url: str) -> Tuple[str, Optional[str]]:
    """
    Rewrite a PostgreSQL URL for the pg8000 driver.

    Returns the rewritten URL and the ``sslmode`` it carried, which pg8000 does not
    accept as a URL parameter. SQLite and explicit-driver URLs pass through.
    """
    if url.startswith("sqlite") or "+" in url.split("://", 1)[0]:
        return url, None

    query_params = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    ssl_mode = query_params.get("sslmode", [None])[0]

    match = _PG_URL_PATTERN.match(url)
    if not match:
        return url, ssl_mode

    username, password, host, port, dbname = match.groups()
    return f"postgresql+pg8000://{username}:{password}@{host}:{port or '5432'}/{dbname}", ssl_mode


def install_slow_query_logging(engine: Engine, threshold_ms: float) -> None:
    if threshold_ms <= 0:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms < threshold_ms:
            return

        stmt = " ".join(str(statement).split())
        if len(stmt) > 500:
            stmt = stmt[:500] + "..."
        slow_query_logger.warning("SLOW_DB_QUERY | ms=%.1f | stmt=%s", elapsed_ms, stmt)


def build_engine(url: str, *, slow_query_ms: Optional[float] = None) -> Engine:
    """Create the engine for ``url``: a pooled pg8000 engine, or SQLite for local runs and tests"""
    url, ssl_mode = normalize_database_url(url)

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    else:
        connect_args = {}
        # Managed Postgres hosts terminate TLS with certificates pg8000 cannot verify
        if ssl_mode != "disable" and not TESTING:
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
            connect_args["ssl_context"] = ssl_context

        engine = create_engine(
            url,
            pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "30")),
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE_SECONDS", "300")),
            pool_pre_ping=True,
            echo=False,
            connect_args=connect_args,
        )

    if slow_query_ms is None:
        slow_query_ms = float(os.getenv("SLOW_DB_QUERY_THRESHOLD_MS", "200"))
    install_slow_query_logging(engine, slow_query_ms)
    return engine


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    if not TESTING:
        raise ValueError("DATABASE_URL environment variable is not set")
    # Tests build their own engines; this one only has to exist
    DATABASE_URL = "sqlite:///:memory:"

engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

