"""
Audit log endpoints for API v1.

Every service operation records ``<operation>.requested``, one row per
category of change, and a final ``success`` or ``error`` row.  This
route reads them back with filters.  Requires ``admin.audit``.
"""

import sqlite3
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from backoffice_api.app.core.db import get_db
from backoffice_api.app.core.security import AuthContext, require_scope
from backoffice_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("/logs")
async def list_audit_logs(
    user_id: Optional[int] = Query(None, description="Filter by acting user ID"),
    object_type: Optional[str] = Query(None, description="Filter by object type (group, product, section, ...)"),
    action: Optional[str] = Query(None, description="Full action name or dotted prefix, e.g. products.pairs"),
    start_date: Optional[str] = Query(None, description="Start date (ISO format) for filtering"),
    end_date: Optional[str] = Query(None, description="End date (ISO format) for filtering"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    conn: sqlite3.Connection = Depends(get_db),
    current_user: AuthContext = Depends(require_scope("admin.audit")),
) -> List[dict]:
    """Retrieve audit logs, newest first."""
    return await AuditService.list_logs(
        conn,
        user_id=user_id,
        object_type=object_type,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
