"""Engine and session factory for the relational store."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # hand transaction control to SQLAlchemy's "begin" event below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        # take the write lock up front so concurrent writers queue instead of deadlocking
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for PostgreSQL (psycopg) or, for local runs, SQLite."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _configure_sqlite(engine)
        return engine
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create every table that does not exist yet."""
    # registers the table classes on Base.metadata
    from cumulus_api.db import tables  # noqa: F401

    Base.metadata.create_all(engine)
