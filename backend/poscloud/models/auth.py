from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Roles allowed to approve overrides and provision virtual tokens
APPROVER_ROLES = ("owner", "admin", "supervisor")
USER_ROLES = APPROVER_ROLES + ("cashier",)


class User(db.Model):
    """
    Owner-app user accounts.

    MULTI-TENANT: Users belong to exactly one company (company_id).
    Username is unique within a company, not globally.

    POS terminals never log in; they reach the terminal endpoints with the
    shared override key. Only owner-app users approve overrides.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("company_id", "username", name="uq_users_company_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default="cashier")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    company = db.relationship("Company", backref=db.backref("users", lazy=True))

    @property
    def can_approve(self) -> bool:
        return self.role in APPROVER_ROLES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "lastLoginAt": to_utc_z(self.last_login_at),
        }


class SessionToken(db.Model):
    """
    Owner-app session tokens.

    SECURITY: Only the SHA-256 hash of the bearer token is stored.
    MULTI-TENANT: company_id is captured at login and never changes.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_revoked", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
    company = db.relationship("Company")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "companyId": self.company_id,
            "createdAt": to_utc_z(self.created_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "expiresAt": to_utc_z(self.expires_at),
            "isRevoked": self.is_revoked,
        }
