from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Audit trail for override transitions and other sensitive actions.

    MULTI-TENANT: Every row belongs to one company; reads filter by company_id.

    IMMUTABLE: Never update or delete. Append-only, removed only by a
    whole-company purge.

    result values: requested, approved, rejected, provisioned, SUCCESS.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    action_code = db.Column(db.String(64), nullable=False, index=True)
    resource_type = db.Column(db.String(64), nullable=True)
    resource_id = db.Column(db.String(128), nullable=True)

    requested_by_id = db.Column(db.Integer, nullable=True)
    approved_by_id = db.Column(db.Integer, nullable=True)

    method = db.Column(db.String(32), nullable=True)
    result = db.Column(db.String(32), nullable=False, index=True)
    terminal_id = db.Column(db.String(128), nullable=True)

    meta = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "actionCode": self.action_code,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "requestedById": self.requested_by_id,
            "approvedById": self.approved_by_id,
            "method": self.method,
            "result": self.result,
            "terminalId": self.terminal_id,
            "meta": self.meta,
            "createdAt": to_utc_z(self.created_at),
        }
