"""
core/db.py -- Engine construction shared by the user store and the ledger.

Both stores hold their own Engine (they may point at different databases).
This module only decides how an Engine is built from a URL.

Layer rule: core/ is the kernel. No imports from api/, auth/ or ledger/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str, timeout: float) -> Engine:
    """Create an Engine with a bounded wait on every storage call.

    SQLite: sqlite3's busy timeout caps how long a statement waits on a lock,
    and check_same_thread=False lets FastAPI's thread pool share connections.
    Other backends: pool_timeout caps how long a request waits for a connection.
    """
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False, "timeout": timeout})
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_timeout=timeout, pool_pre_ping=True)
