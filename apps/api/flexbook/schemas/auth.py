"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from flexbook.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Built by the get_current_session dependency from the identity headers
    set by the upstream auth gateway.
    """
    user_id: UUID
    tenant_id: UUID
    role: Role  # Validated enum
