from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import SingletonThreadPool, StaticPool

from ledger.config import settings

# Execution option for short reads that must not queue behind writers.
SNAPSHOT_READ = "ledger_snapshot_read"


def _is_file_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and ":memory:" not in url and not url.rstrip("/").endswith(":")


def shares_one_connection(engine: Engine) -> bool:
    """True when every session runs on the same DBAPI connection, so transactions never overlap."""
    return isinstance(engine.pool, (StaticPool, SingletonThreadPool))


def enable_sqlite_transactions(engine: Engine, *, immediate: bool = True) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT and the write lock behave.

    pysqlite defers BEGIN until the first write, so two sessions that both read
    a counter and then write it deadlock on upgrade. BEGIN IMMEDIATE serializes
    writers up front and the busy timeout lets the second one wait. Connections
    marked with ``SNAPSHOT_READ`` only read and keep a deferred BEGIN, as do
    in-memory databases, which have a single connection.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if not immediate or conn.get_execution_options().get(SNAPSHOT_READ):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        enable_sqlite_transactions(engine, immediate=_is_file_sqlite(url))
        return engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
