from collections.abc import Generator
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from examroom.core.config import settings


def enable_sqlite_transactions(target: Engine) -> None:
    """
    Let SQLAlchemy own transaction boundaries on pysqlite.

    The driver's implicit BEGIN breaks SAVEPOINTs (used by the attempt uniqueness claim).
    BEGIN IMMEDIATE serializes writers instead of failing with "database is locked" on
    lock upgrades when two submits race.
    """

    @event.listens_for(target, 'connect')
    def _on_connect(dbapi_connection: Any, _: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(target, 'begin')
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def build_engine(database_url: str) -> Engine:
    if database_url.startswith('sqlite'):
        sqlite_engine = create_engine(database_url, connect_args={'check_same_thread': False, 'timeout': 30})
        enable_sqlite_transactions(sqlite_engine)
        return sqlite_engine
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
