from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()


def serialize_sqlite_writes(engine):
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    SQLite ignores ``FOR UPDATE``; taking the write lock when the transaction
    starts makes concurrent writers run one after the other instead.
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # let the "begin" hook below issue BEGIN instead of pysqlite
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")
