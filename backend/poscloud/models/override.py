from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


REQUEST_STATUSES = ("PENDING", "APPROVED", "REJECTED", "EXPIRED")

METHOD_REMOTE = "remote"
METHOD_VIRTUAL = "virtual"


class OverrideRequest(db.Model):
    """
    A terminal's ask for supervisor authorization.

    LIFECYCLE: PENDING -> APPROVED (or REJECTED / EXPIRED). Resolved once,
    never revisited. Multiple PENDING requests for the same resource may
    coexist; approval only touches the referenced row.
    """
    __tablename__ = "override_requests"
    __table_args__ = (
        db.Index("ix_override_requests_company_status", "company_id", "status"),
        db.Index("ix_override_requests_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    action_code = db.Column(db.String(64), nullable=False)
    resource_type = db.Column(db.String(64), nullable=True)
    resource_id = db.Column(db.String(128), nullable=True)

    requested_by_id = db.Column(db.Integer, nullable=False)
    approved_by_id = db.Column(db.Integer, nullable=True)
    terminal_id = db.Column(db.String(128), nullable=True)

    meta = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING")

    # Set on approval; the plaintext token is never stored
    token_hash = db.Column(db.String(64), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("override_requests", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "actionCode": self.action_code,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "requestedById": self.requested_by_id,
            "approvedById": self.approved_by_id,
            "terminalId": self.terminal_id,
            "meta": self.meta,
            "status": self.status,
            "expiresAt": to_utc_z(self.expires_at),
            "resolvedAt": to_utc_z(self.resolved_at),
            "createdAt": to_utc_z(self.created_at),
        }


class OverrideToken(db.Model):
    """
    Credential a terminal presents to prove an override was authorized.

    SINGLE USE: used_at goes from NULL to set exactly once. The transition
    is a conditional UPDATE so concurrent verifies cannot both win.

    method:
    - remote: minted by approve_override, bound to one request
    - virtual: recorded when a terminal TOTP code is accepted; nonce holds
      the TOTP time step so the same code cannot be replayed
    """
    __tablename__ = "override_tokens"
    __table_args__ = (
        db.UniqueConstraint("company_id", "token_hash", "nonce", name="uq_override_tokens_company_hash_nonce"),
        db.Index("ix_override_tokens_lookup", "company_id", "action_code", "token_hash"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    action_code = db.Column(db.String(64), nullable=False)
    resource_type = db.Column(db.String(64), nullable=True)
    resource_id = db.Column(db.String(128), nullable=True)

    token_hash = db.Column(db.String(64), nullable=False)
    method = db.Column(db.String(16), nullable=False, default=METHOD_REMOTE)
    nonce = db.Column(db.String(32), nullable=False)

    requested_by_id = db.Column(db.Integer, nullable=True)
    approved_by_id = db.Column(db.Integer, nullable=True)
    terminal_id = db.Column(db.String(128), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # One request produces at most one token
    request_id = db.Column(db.Integer, db.ForeignKey("override_requests.id"), nullable=True, unique=True)

    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    used_by_id = db.Column(db.Integer, nullable=True)
    result = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    request = db.relationship("OverrideRequest", backref=db.backref("token", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "actionCode": self.action_code,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "method": self.method,
            "requestedById": self.requested_by_id,
            "approvedById": self.approved_by_id,
            "terminalId": self.terminal_id,
            "requestId": self.request_id,
            "expiresAt": to_utc_z(self.expires_at),
            "usedAt": to_utc_z(self.used_at),
            "usedById": self.used_by_id,
            "result": self.result,
            "createdAt": to_utc_z(self.created_at),
        }


class VirtualTokenSecret(db.Model):
    """
    Per-terminal TOTP secret for the virtual override method.

    The owner app provisions it once and loads it into an authenticator;
    the supervisor then reads the current code to the cashier instead of
    approving each request remotely. One active secret per terminal.
    """
    __tablename__ = "virtual_token_secrets"
    __table_args__ = (
        db.Index("ix_virtual_token_secrets_terminal", "company_id", "terminal_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    terminal_id = db.Column(db.String(128), nullable=False)
    uid = db.Column(db.String(128), nullable=True)

    secret = db.Column(db.String(64), nullable=False)
    provisioned_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        # secret never leaves provisioning
        return {
            "id": self.id,
            "companyId": self.company_id,
            "terminalId": self.terminal_id,
            "uid": self.uid,
            "provisionedById": self.provisioned_by_id,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "revokedAt": to_utc_z(self.revoked_at),
        }
