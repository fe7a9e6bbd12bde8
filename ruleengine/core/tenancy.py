"""Tenant resolution from the X-Tenant-ID request header."""

import re

from fastapi import Header

from .errors import ValidationError

TENANT_HEADER = "X-Tenant-ID"
DEFAULT_TENANT = "default"

_TENANT_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def resolve_tenant(raw: str | None) -> str:
    """Normalize a header value into a tenant id."""
    if raw is None or not raw.strip():
        return DEFAULT_TENANT
    tenant = raw.strip()
    if not _TENANT_PATTERN.match(tenant):
        raise ValidationError(f"Invalid tenant id '{tenant}'", field=TENANT_HEADER)
    return tenant


def get_tenant_id(x_tenant_id: str | None = Header(default=None, alias=TENANT_HEADER)) -> str:
    """FastAPI dependency returning the caller's tenant."""
    return resolve_tenant(x_tenant_id)
