"""FastAPI dependencies for identity, authorization, and database access."""

from dataclasses import dataclass
from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from safetyforms.db.enums import Role
from safetyforms.db.session import SessionLocal


USER_HEADER = "X-User-Id"
ORG_HEADER = "X-Org-Id"
ROLE_HEADER = "X-Role"


@dataclass(frozen=True)
class Identity:
    """Caller identity as forwarded by the authenticating gateway."""

    user_id: str
    org_id: str
    role: Role


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity(request: Request) -> Identity:
    """
    Read the caller identity from request headers.

    Raises:
        HTTPException 401: Missing user or organization header
        HTTPException 403: Unknown role
    """
    user_id = (request.headers.get(USER_HEADER) or "").strip()
    org_id = (request.headers.get(ORG_HEADER) or "").strip()
    if not user_id or not org_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    role_value = (request.headers.get(ROLE_HEADER) or Role.USER.value).strip().lower()
    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(role_value):
        raise HTTPException(status_code=403, detail=f"Unknown role '{role_value}'")

    return Identity(user_id=user_id, org_id=org_id, role=Role(role_value))


def require_roles(allowed_roles: list[Role]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/templates", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """

    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{identity.role.value}' not authorized for this action",
            )
        return identity

    return dependency


require_admin = require_roles([Role.ADMIN])
require_reviewer = require_roles([Role.ADMIN, Role.ANALYST])
