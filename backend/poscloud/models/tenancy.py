from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every POS business is a Company.

    MULTI-TENANT: Override requests, tokens, audit rows and owner-app users
    all carry company_id. Nothing crosses company boundaries.

    POS terminals identify their company by tax ID (RNC) or by the cloud ID
    handed out at first sync; see company_service.resolve_company_id.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    rnc = db.Column(db.String(32), nullable=True, unique=True, index=True)
    cloud_company_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rnc": self.rnc,
            "cloudCompanyId": self.cloud_company_id,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
