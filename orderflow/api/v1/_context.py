"""Request identity and error mapping shared by API v1 route modules."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from orderflow.core.exceptions import (
    ConfigurationError,
    ExternalSyncFailure,
    NotFoundError,
    OrderflowException,
    ValidationError,
)
from orderflow.models import HumanActor


@dataclass(frozen=True)
class RequestIdentity:
    """Tenant and user as asserted by the authenticating gateway."""

    tenant_id: int
    user_id: int | None = None

    def require_actor(self) -> HumanActor:
        if self.user_id is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required.")
        return HumanActor(user_id=self.user_id)


def _parse_id(value: str | None, header: str, required: bool) -> int | None:
    if value is None or not value.strip():
        if required:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"{header} header is required.")
        return None
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{header} must be an integer.") from exc
    if parsed < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{header} must be positive.")
    return parsed


def get_identity(
    x_tenant_id: str | None = Header(default=None, alias="X-Tenant-Id"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> RequestIdentity:
    return RequestIdentity(
        tenant_id=_parse_id(x_tenant_id, "X-Tenant-Id", required=True),
        user_id=_parse_id(x_user_id, "X-User-Id", required=False),
    )


def map_domain_error(exc: Exception) -> tuple[int, str]:
    if isinstance(exc, NotFoundError):
        return 404, str(exc)
    if isinstance(exc, ValidationError):
        return 422, str(exc)
    if isinstance(exc, ConfigurationError):
        return 409, str(exc)
    if isinstance(exc, ExternalSyncFailure):
        return 502, str(exc)
    return 500, "Internal error."


@contextmanager
def domain_errors() -> Iterator[None]:
    try:
        yield
    except OrderflowException as exc:
        code, detail = map_domain_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc
