"""
API dependencies
"""
from typing import Optional

from fastapi import Header, HTTPException, Query, status

from claimportal.db import get_db
from claimportal.services.ai_analysis import get_ai_analysis_service
from claimportal.services.notifications import get_notification_dispatcher
from claimportal.services.session_store import get_session_store
from claimportal.services.storage import get_file_storage, get_staging_area


def get_owner_id(
    x_owner_id: Optional[str] = Header(None, alias="X-Owner-Id"),
    owner_id: Optional[str] = Query(None),
) -> str:
    """Claimant id from the X-Owner-Id header, or the owner_id query parameter."""
    value = (x_owner_id or owner_id or "").strip()
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Owner-Id header is required",
        )
    return value


__all__ = [
    "get_db",
    "get_owner_id",
    "get_session_store",
    "get_file_storage",
    "get_staging_area",
    "get_notification_dispatcher",
    "get_ai_analysis_service",
]
