"""Error taxonomy for the replenishment core.

Absence of data is not an error here: read paths return empty pages or None.
"""

from __future__ import annotations


class ReplenishError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "replenish_error"


class InputValidationError(ReplenishError, ValueError):
    """Malformed caller input (bad date, unknown entity, inverted range).

    Rejected before persistence is touched; not retryable.
    """

    status_code = 400
    code = "validation_error"


class AuthenticationError(ReplenishError):
    """Missing or unknown API key."""

    status_code = 401
    code = "unauthorized"


class TenantMismatchError(ReplenishError):
    """Resolved org does not match an explicitly supplied org id."""

    status_code = 403
    code = "tenant_mismatch"


class TransientStoreError(ReplenishError):
    """Persistence layer unavailable or timed out.

    All core writes are idempotent, so callers may retry with the same input.
    """

    status_code = 503
    code = "store_unavailable"


__all__ = [
    "ReplenishError",
    "InputValidationError",
    "AuthenticationError",
    "TenantMismatchError",
    "TransientStoreError",
]
