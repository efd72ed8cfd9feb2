# Overview: Service-layer operations for companies (tenants); encapsulates business logic and database work.

"""
Company resolution and tenant maintenance

POS terminals do not know internal company ids. They identify themselves
by tax ID (RNC) or by the cloud ID assigned at first sync. RNCs arrive in
whatever format the cashier typed ("1-31-12345-6", "131123456"), so a
normalized comparison is the last resort.
"""

from __future__ import annotations

import logging
import re

from ..extensions import db
from ..models import AuditLog, Company, OverrideRequest, OverrideToken, VirtualTokenSecret
from .audit_service import record_audit_now


logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_rnc(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def create_company(name: str, rnc: str | None = None, cloud_company_id: str | None = None) -> Company:
    name = (name or "").strip()
    if not name:
        raise ValueError("Company name is required")

    rnc = (rnc or "").strip() or None
    cloud_company_id = (cloud_company_id or "").strip() or None

    if rnc and resolve_company_id(rnc=rnc):
        raise ValueError(f"RNC already registered: {rnc}")
    if cloud_company_id and resolve_company_id(cloud_id=cloud_company_id):
        raise ValueError(f"Cloud ID already registered: {cloud_company_id}")

    company = Company(name=name, rnc=rnc, cloud_company_id=cloud_company_id, is_active=True)
    db.session.add(company)
    db.session.commit()
    return company


def resolve_company_id(rnc: str | None = None, cloud_id: str | None = None) -> int | None:
    """
    Map a tax ID or cloud ID to the internal company id.

    Order: exact cloud id, exact RNC, normalized RNC. None when nothing matches.
    """
    rnc = (rnc or "").strip()
    cloud_id = (cloud_id or "").strip()
    if not rnc and not cloud_id:
        return None

    if cloud_id:
        by_cloud = db.session.query(Company.id).filter_by(cloud_company_id=cloud_id).first()
        if by_cloud:
            return by_cloud.id

    if not rnc:
        return None

    by_rnc = db.session.query(Company.id).filter_by(rnc=rnc).first()
    if by_rnc:
        return by_rnc.id

    normalized = normalize_rnc(rnc)
    if not normalized:
        return None

    candidates = db.session.query(Company.id, Company.rnc).filter(Company.rnc.isnot(None)).all()
    for candidate in candidates:
        if normalize_rnc(candidate.rnc) == normalized:
            return candidate.id
    return None


def purge_company_override_data(company_id: int) -> dict:
    """
    Delete every override token, request, virtual secret and audit row of
    one company, then record the purge itself.

    Returns deleted row counts per table.
    """
    company = db.session.get(Company, company_id)
    if not company:
        raise ValueError(f"Company not found: {company_id}")

    try:
        deleted = {
            # tokens reference requests, so they go first
            "overrideTokens": db.session.query(OverrideToken).filter_by(company_id=company_id).delete(),
            "overrideRequests": db.session.query(OverrideRequest).filter_by(company_id=company_id).delete(),
            "virtualTokenSecrets": db.session.query(VirtualTokenSecret).filter_by(company_id=company_id).delete(),
            "auditLogs": db.session.query(AuditLog).filter_by(company_id=company_id).delete(),
        }
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    record_audit_now(
        company_id,
        "DANGER_PURGE",
        "SUCCESS",
        method="CLI",
        meta={"companyRnc": company.rnc, "companyCloudId": company.cloud_company_id, "deleted": deleted},
    )
    logger.warning("purged override data for company=%s: %s", company_id, deleted)
    return deleted
