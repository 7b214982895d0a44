"""FastAPI dependencies for tenant resolution and database."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.errors import AuthenticationError, TenantMismatchError
from replenish.core.logging import get_logger
from replenish.core.metrics import tenant_violations_total
from replenish.db.models import Organization
from replenish.db.session import SessionLocal

log = get_logger("replenish.web.deps")


def get_db() -> Session:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DBSession = Annotated[Session, Depends(get_db)]


def get_org_scope(
    request: Request,
    db: DBSession,
    org_id: Annotated[str | None, Query(description="Must match the API key's org")] = None,
) -> str:
    """Resolve the caller's organization from the API key header.

    An explicit org_id that differs from the resolved one is rejected,
    never silently corrected.

    Raises:
        AuthenticationError: Missing or unknown API key
        TenantMismatchError: org_id does not match the API key

    Usage:
        >>> @router.get("/buffers")
        >>> def list_(org_id: OrgScope):
        >>>     # org_id belongs to the caller

    """
    header = get_settings().api_key_header
    api_key = (request.headers.get(header) or "").strip()
    if not api_key:
        tenant_violations_total.labels(error_type="invalid_key").inc()
        raise AuthenticationError(f"{header} header is required")

    org = db.scalars(select(Organization).where(Organization.api_key == api_key)).first()
    if org is None:
        tenant_violations_total.labels(error_type="invalid_key").inc()
        raise AuthenticationError("Invalid API key")

    if org_id is not None and org_id != org.id:
        tenant_violations_total.labels(error_type="mismatch").inc()
        log.warning(
            "tenant_mismatch",
            extra={"resolved_org_id": org.id, "provided_org_id": org_id, "path": request.url.path},
        )
        raise TenantMismatchError("org_id does not match API key")
    return org.id


OrgScope = Annotated[str, Depends(get_org_scope)]
