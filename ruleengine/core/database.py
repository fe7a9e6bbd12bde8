"""Database connection management for SQLModel ORM.

In single-tenant mode every request shares one engine. With
``multi_tenant_enabled`` each tenant id gets its own engine, built from the
``tenant_database_url`` template and initialised on first use.
"""

import threading
from pathlib import Path
from typing import Generator

from fastapi import Depends
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings
from .tenancy import DEFAULT_TENANT, get_tenant_id

_engines: dict[str, Engine] = {}
_lock = threading.Lock()


def _database_url(tenant_id: str) -> str:
    settings = get_settings()
    if settings.multi_tenant_enabled:
        return settings.tenant_database_url.format(tenant=tenant_id)
    return settings.database_url


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix) and len(url) > len(prefix):
        Path(url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def get_engine(tenant_id: str = DEFAULT_TENANT) -> Engine:
    """Get (creating if needed) the engine for a tenant."""
    key = tenant_id if get_settings().multi_tenant_enabled else DEFAULT_TENANT
    engine = _engines.get(key)
    if engine is not None:
        return engine
    with _lock:
        engine = _engines.get(key)
        if engine is None:
            url = _database_url(key)
            _ensure_sqlite_dir(url)
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
            engine = create_engine(url, echo=False, connect_args=connect_args)
            init_db(engine)
            _engines[key] = engine
    return engine


def reset_engines() -> None:
    """Dispose and forget every engine (useful for testing)."""
    with _lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()


def init_db(engine: Engine | None = None) -> None:
    """Create SQLModel tables."""
    from ruleengine.storage import models  # noqa: F401  (registers tables)

    SQLModel.metadata.create_all(engine or get_engine())


def get_session(tenant_id: str = Depends(get_tenant_id)) -> Generator[Session, None, None]:
    """Yield a SQLModel session for the caller's tenant."""
    with Session(get_engine(tenant_id)) as session:
        yield session
