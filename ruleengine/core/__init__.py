"""Core package - configuration, database, errors and logging."""

from .config import Settings, get_settings
from .database import get_engine, get_session, init_db, reset_engines
from .errors import (
    ConflictError,
    EvaluationError,
    NotFoundError,
    RuleEngineError,
    ValidationError,
    register_exception_handlers,
)
from .log import configure_logging
from .models import CamelModel
from .tenancy import DEFAULT_TENANT, TENANT_HEADER, get_tenant_id, resolve_tenant

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "get_engine",
    "get_session",
    "init_db",
    "reset_engines",
    # Errors
    "RuleEngineError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "EvaluationError",
    "register_exception_handlers",
    # Logging
    "configure_logging",
    # Models
    "CamelModel",
    # Tenancy
    "DEFAULT_TENANT",
    "TENANT_HEADER",
    "get_tenant_id",
    "resolve_tenant",
]
