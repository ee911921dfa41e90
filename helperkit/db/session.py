"""
Database engine bootstrap and transactional session helper.

One engine is created per URL and reused for the life of the process.
"""

from typing import Callable, Dict, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from helperkit.core.config import settings
from helperkit.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_engines: Dict[str, Engine] = {}
_sessionmakers: Dict[str, sessionmaker] = {}


def create_or_return_engine(url: Optional[str] = None, **engine_kwargs) -> Engine:
    """Return the cached engine for `url`, creating it on first use."""
    url = url or settings.DATABASE_URL
    engine = _engines.get(url)
    if engine is None:
        engine_kwargs.setdefault("pool_pre_ping", True)
        engine = create_engine(url, **engine_kwargs)
        _engines[url] = engine
        logger.info("Database engine created", dialect=engine.dialect.name)
    return engine


def get_sessionmaker(url: Optional[str] = None) -> sessionmaker:
    url = url or settings.DATABASE_URL
    factory = _sessionmakers.get(url)
    if factory is None:
        factory = sessionmaker(
            autocommit=False, autoflush=False, bind=create_or_return_engine(url)
        )
        _sessionmakers[url] = factory
    return factory


def session_transaction(
    transaction: Callable[[Session], T], url: Optional[str] = None
) -> T:
    """
    Run `transaction(session)` inside a single database transaction.

    Commits when the callable returns, rolls back and re-raises when it
    raises. The session is always closed. Models used inside the transaction
    must already be mapped.
    """
    session = get_sessionmaker(url)()
    try:
        result = transaction(session)
        session.commit()
        return result
    except Exception:
        session.rollback()
        logger.warning("Database transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Dispose every cached engine; used on shutdown and between tests."""
    for engine in list(_engines.values()):
        engine.dispose()
        logger.info("Database engine disposed", dialect=engine.dialect.name)
    _engines.clear()
    _sessionmakers.clear()
