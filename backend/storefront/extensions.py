# Overview: Flask extension instances for database and migrations.

from contextvars import ContextVar

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()

# Set by concurrency.transaction() so SQLite takes the write lock up front
immediate_begin: ContextVar[bool] = ContextVar("immediate_begin", default=False)


def _sqlite_on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate_begin.get() else "BEGIN")


def install_sqlite_locking(engine) -> bool:
    """
    SQLite ignores SELECT ... FOR UPDATE. Stop pysqlite issuing its own BEGIN
    on this engine so write transactions can start with BEGIN IMMEDIATE,
    which serializes writers instead.

    Returns False (and changes nothing) for other dialects.
    """
    if engine.dialect.name != "sqlite":
        return False
    if not event.contains(engine, "connect", _sqlite_on_connect):
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)
    return True
