"""
Analytics endpoints for the business dashboard.

Provides revenue, rankings, today's distribution and recent activity.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from flexbook.core.deps import get_db, require_roles
from flexbook.db.enums import Role
from flexbook.schemas.analytics import AnalyticsSnapshot
from flexbook.schemas.auth import UserSession
from flexbook.services import analytics_service
from flexbook.services.errors import NotFoundError


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/stats", response_model=AnalyticsSnapshot)
def get_stats(
    session: UserSession = Depends(require_roles([Role.ADMIN, Role.STAFF])),
    db: Session = Depends(get_db),
):
    """Dashboard snapshot for the caller's tenant."""
    try:
        return analytics_service.compute_stats(db, session.tenant_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
