# Overview: Service-layer operations for the audit trail; encapsulates business logic and database work.

"""
Append-only audit trail.

record_audit() only adds the row to the current session so it commits or
rolls back together with the transition it describes. record_audit_now()
commits on its own and is used where the audit row must survive a failed
operation (verify rejections) or follows a bulk delete (tenant purge).
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import AuditLog
from ..time_utils import utcnow


def record_audit(
    company_id: int,
    action_code: str,
    result: str,
    *,
    resource_type: str | None = None,
    resource_id: str | None = None,
    requested_by_id: int | None = None,
    approved_by_id: int | None = None,
    method: str | None = None,
    terminal_id: str | None = None,
    meta: dict | None = None,
    now: datetime | None = None,
) -> AuditLog:
    entry = AuditLog(
        company_id=company_id,
        action_code=action_code,
        resource_type=resource_type,
        resource_id=resource_id,
        requested_by_id=requested_by_id,
        approved_by_id=approved_by_id,
        method=method,
        result=result,
        terminal_id=terminal_id,
        meta=meta,
        created_at=now or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def record_audit_now(company_id: int, action_code: str, result: str, **kwargs) -> AuditLog:
    entry = record_audit(company_id, action_code, result, **kwargs)
    db.session.commit()
    return entry


def get_audit(company_id: int, limit: int | None = None, *, max_limit: int = 200) -> list[AuditLog]:
    """Most recent audit rows for one company."""
    limit = min(limit or 100, max_limit)
    return (
        db.session.query(AuditLog)
        .filter(AuditLog.company_id == company_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
