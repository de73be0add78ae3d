from typing import Iterator
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Base class for all database models
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE and FK checks unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class Database:
    """
    Owns the engine (connection pool) and the session factory.

    One instance is created by create_app() and stored on app.state; request
    handlers borrow a Session from it through get_db().
    """

    def __init__(self, url: str):
        connect_args = {}
        if url.startswith("sqlite"):
            # Sessions are used from FastAPI's threadpool
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        # autocommit=False: changes require explicit commit
        # autoflush=False: don't auto-flush before queries
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create tables from all models that inherit from Base"""
        # Model modules must be imported so their tables are registered
        from storefront.models import cart, favorite, product, user  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency for getting database session.

    The session is closed after the request completes, even when the handler
    raises, so its connection goes back to the pool.
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


# SQLSTATE codes PostgreSQL drivers attach to integrity failures
_SQLSTATE_KINDS = {
    "23505": "unique",
    "23503": "foreign_key",
    "23514": "check",
    "23502": "not_null",
}

# Markers in the driver message, for drivers without SQLSTATE (SQLite)
_MESSAGE_KINDS = (
    ("UNIQUE", "unique"),
    ("FOREIGN KEY", "foreign_key"),
    ("CHECK", "check"),
    ("NOT NULL", "not_null"),
)


def integrity_error_kind(exc: IntegrityError) -> str:
    """
    Tell which kind of constraint an IntegrityError broke.

    Returns 'unique', 'foreign_key', 'check', 'not_null' or 'unknown'.
    """
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _SQLSTATE_KINDS:
        return _SQLSTATE_KINDS[code]

    message = str(orig).upper()
    for marker, kind in _MESSAGE_KINDS:
        if marker in message:
            return kind
    return "unknown"
