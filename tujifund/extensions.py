"""
EXTENSIONS
==========

Shared Flask extension instances, plus the transaction helpers that
services use for locked, all-or-nothing writes.
"""

from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, text

db = SQLAlchemy()
login_manager = LoginManager()

# Execution option read by the SQLite "begin" hook below
WRITE_LOCK_OPTIONS = {'tujifund_begin': 'IMMEDIATE'}


def install_sqlite_locking(engine):
    """
    Let SQLite write transactions take the database lock up front.

    SQLite has no row locks, so SELECT ... FOR UPDATE is a no-op there.
    pysqlite's own BEGIN handling is switched off and SQLAlchemy's "begin"
    event decides the mode instead: DEFERRED for ordinary work, IMMEDIATE
    for transactions opened with begin_write_transaction(). Two checkouts
    are then serialized on the write lock instead of both passing the
    balance/stock checks.
    """
    if engine.dialect.name != 'sqlite':
        return

    @event.listens_for(engine, 'connect')
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _emit_begin(conn):
        mode = conn.get_execution_options().get('tujifund_begin', 'DEFERRED')
        conn.exec_driver_sql(f'BEGIN {mode}')


def begin_write_transaction():
    """
    Start a transaction that holds write locks from its first read.

    Must be called at the start of a unit of work: a read transaction the
    request already opened (the Flask-Login user lookup, for one) is
    committed first so the new lock mode applies.
    """
    if db.session().in_transaction():
        db.session.commit()
    return db.session.connection(execution_options=WRITE_LOCK_OPTIONS)


def apply_statement_timeout(seconds):
    """Bound every statement of the current transaction (PostgreSQL only)."""
    if db.session.get_bind().dialect.name == 'postgresql':
        db.session.execute(text(f'SET LOCAL statement_timeout = {int(seconds * 1000)}'))
