"""Database helpers for the research worker."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import extras, pool

from crm_research.core.config import get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

CUSTOMER_COLUMNS = (
    "id",
    "name",
    "organization",
    "country",
    "region",
    "industry",
    "seller",
    "notes",
    "potential_score",
    "website",
)
_CUSTOMER_SELECT = "SELECT " + ", ".join(CUSTOMER_COLUMNS) + " FROM customers"


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _fetch_all(sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            return [dict(row) for row in cur.fetchall()]


def build_customer_query(filters: Optional[Dict[str, Any]] = None, limit: Optional[int] = None):
    """Return the (sql, params) pair for a filtered customer lookup."""
    filters = filters or {}
    clauses: List[str] = []
    params: Dict[str, Any] = {}

    if filters.get("exclude_id"):
        clauses.append("id <> %(exclude_id)s")
        params["exclude_id"] = str(filters["exclude_id"])
    for column in ("country", "region", "industry", "seller"):
        if filters.get(column):
            clauses.append(f"{column} = %({column})s")
            params[column] = filters[column]

    sql = _CUSTOMER_SELECT
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY name"
    if limit:
        sql += " LIMIT %(limit)s"
        params["limit"] = int(limit)
    return sql, params


def find_customer_by_id(customer_id: str) -> Optional[Dict[str, Any]]:
    """Return one customer projection or None."""
    rows = _fetch_all(_CUSTOMER_SELECT + " WHERE id = %(id)s", {"id": str(customer_id)})
    return rows[0] if rows else None


def find_customers(filters: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Return customer projections matching simple equality filters."""
    sql, params = build_customer_query(filters, limit)
    rows = _fetch_all(sql, params)
    logger.debug("Loaded %d customers (filters=%s, limit=%s)", len(rows), filters, limit)
    return rows


def get_app_setting(key: str) -> Optional[Any]:
    """Return the JSON value stored under an app setting key."""
    rows = _fetch_all("SELECT value FROM app_settings WHERE key = %(key)s", {"key": key})
    return rows[0]["value"] if rows else None


_UPSERT_SETTING = """
INSERT INTO app_settings (
    key,
    value,
    updated_at
) VALUES (
    %(key)s,
    %(value)s,
    NOW()
)
ON CONFLICT (key) DO UPDATE SET
    value = EXCLUDED.value,
    updated_at = NOW();
"""


def upsert_app_setting(key: str, value: Any) -> None:
    """Persist a JSON app setting, performing an idempotent upsert."""
    if not key:
        raise ValueError("key is required for app setting upsert")

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_UPSERT_SETTING, {"key": key, "value": extras.Json(value)})
        conn.commit()
        logger.debug("Upserted app setting %s", key)

