"""FastAPI dependencies for identity, authorization, and database access.

Authentication happens upstream: the gateway forwards the caller's identity
as X-Tenant-ID, X-User-ID and X-User-Role headers.
"""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from flexbook.db.enums import Role
from flexbook.db.models import User
from flexbook.db.session import SessionLocal
from flexbook.schemas.auth import UserSession


TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"
ROLE_HEADER = "X-User-Role"


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped SQLAlchemy session.

    Closed when the response is sent; services commit or roll back themselves.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _parse_uuid_header(request: Request, name: str) -> UUID:
    raw = request.headers.get(name)
    if not raw:
        raise HTTPException(status_code=401, detail=f"Missing {name} header")
    try:
        return UUID(raw)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {name} header")


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
) -> UserSession:
    """
    Get session context: user_id, tenant_id, role.

    Raises:
        HTTPException 401: Identity headers missing or malformed
        HTTPException 403: Unknown role, user not in the tenant, or role mismatch
    """
    tenant_id = _parse_uuid_header(request, TENANT_HEADER)
    user_id = _parse_uuid_header(request, USER_HEADER)
    raw_role = (request.headers.get(ROLE_HEADER) or "").lower()

    # Unknown roles are a 403, never a 500
    if not Role.has_value(raw_role):
        raise HTTPException(status_code=403, detail=f"Unknown role '{raw_role}'")

    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant_id,
    ).first()
    if not user:
        raise HTTPException(status_code=403, detail="User does not belong to this tenant")
    if user.role != raw_role:
        raise HTTPException(status_code=403, detail="Role does not match the user record")

    return UserSession(user_id=user_id, tenant_id=tenant_id, role=Role(raw_role))


def require_roles(allowed_roles: list):
    """
    Build a dependency that admits only the given roles.

    Usage:
        @router.get("/stats", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency
