from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def build_engine(
    database_url: str,
    connect_timeout: int = 5,
    statement_timeout_ms: int = 5000,
    pool_timeout: int = 10,
    **kwargs,
) -> Engine:
    """Create an engine whose calls are bounded by driver-level timeouts."""
    if database_url.startswith("postgresql"):
        kwargs.setdefault(
            "connect_args",
            {
                "connect_timeout": connect_timeout,
                "options": f"-c statement_timeout={statement_timeout_ms}",
            },
        )
        kwargs.setdefault("pool_timeout", pool_timeout)
    return create_engine(database_url, echo=False, pool_pre_ping=True, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Yield a session and always close it."""
    db = factory()
    try:
        yield db
    finally:
        db.close()
