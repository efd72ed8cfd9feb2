# Overview: Service-layer operations for supervisor overrides; encapsulates business logic and database work.

"""
Override Authorization Service

A cashier at a POS terminal asks for permission to do something sensitive
(void a sale, open the drawer, give a big discount). A supervisor approves
it from the owner app and reads a one-time token back to the cashier, who
types it at the terminal.

PHASES:
1. create_override_request: terminal records intent, status PENDING
2. approve_override: supervisor approves, a token is minted; the request
   update, the OverrideToken row and the audit row commit together
3. verify_override: terminal presents the token; it is consumed once

SECURITY:
- Only SHA-256 hashes of tokens are stored
- Tokens expire (30..600 s, default 180) and are checked lazily at verify
- Single use is enforced with a conditional UPDATE on used_at
- Every lookup filters by company_id (tenant isolation)
- Every transition writes an AuditLog row; verify rejections are audited
  in their own commit after the failed transaction rolls back
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Company, OverrideRequest, OverrideToken
from ..models.override import METHOD_REMOTE, METHOD_VIRTUAL, REQUEST_STATUSES
from ..time_utils import as_naive_utc, to_utc_z, utcnow
from ..validation import ValidationError
from . import virtual_token_service
from .audit_service import record_audit, record_audit_now
from .concurrency import claim_once, lock_for_update, run_with_retry
from .token_utils import TokenGenerator, hash_override_token, normalize_override_token


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 180
MIN_TTL_SECONDS = 30
MAX_TTL_SECONDS = 600
MAX_PAGE_SIZE = 200

# Reasons surfaced verbatim to terminals
INVALID_TOKEN = "invalid token"
TOKEN_ALREADY_USED = "token already used"
TOKEN_EXPIRED = "token expired"
RESOURCE_MISMATCH = "resource mismatch"
APPROVE_FAILED = "could not approve request"


class OverrideError(Exception):
    """Business-rule failure in the override protocol (client error)."""

    def __init__(self, message: str, status: int = 400, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details or {}


def _require_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if not company or not company.is_active:
        raise OverrideError("company not found", status=404)
    return company


def create_override_request(
    company_id: int,
    action_code: str,
    requested_by_id: int,
    *,
    resource_type: str | None = None,
    resource_id: str | None = None,
    terminal_id: str | None = None,
    meta: dict | None = None,
    now: datetime | None = None,
) -> dict:
    """Record a terminal's request. Returns {"requestId", "status"}."""
    now = as_naive_utc(now) or utcnow()
    _require_company(company_id)

    request = OverrideRequest(
        company_id=company_id,
        action_code=action_code,
        resource_type=resource_type,
        resource_id=resource_id,
        requested_by_id=requested_by_id,
        terminal_id=terminal_id,
        meta=meta,
        status="PENDING",
        created_at=now,
    )
    db.session.add(request)
    db.session.flush()

    record_audit(
        company_id,
        action_code,
        "requested",
        resource_type=resource_type,
        resource_id=resource_id,
        requested_by_id=requested_by_id,
        approved_by_id=None,
        method=METHOD_REMOTE,
        terminal_id=terminal_id,
        meta=meta,
        now=now,
    )
    db.session.commit()

    logger.info("override requested company=%s request=%s action=%s", company_id, request.id, action_code)
    return {"requestId": request.id, "status": request.status}


def approve_override(
    company_id: int,
    request_id: int,
    approved_by_id: int,
    *,
    expires_in_seconds: int | None = None,
    now: datetime | None = None,
    generator: TokenGenerator | None = None,
) -> dict:
    """
    Approve a PENDING request and mint its one-time token.

    Returns {"requestId", "token", "expiresAt", "tokenId"}. The plaintext
    token appears only in this return value.

    Raises OverrideError("could not approve request") when the request does
    not exist in this company or is no longer PENDING. Nothing is committed
    in that case.
    """
    ttl = DEFAULT_TTL_SECONDS if expires_in_seconds is None else expires_in_seconds
    if not MIN_TTL_SECONDS <= ttl <= MAX_TTL_SECONDS:
        raise ValidationError(issues=[{
            "path": ["expiresInSeconds"],
            "message": f"Number must be between {MIN_TTL_SECONDS} and {MAX_TTL_SECONDS}",
        }])

    now = as_naive_utc(now) or utcnow()
    generator = generator or TokenGenerator()

    token = generator.token()
    token_hash = hash_override_token(token)
    expires_at = now + timedelta(seconds=ttl)

    try:
        request = lock_for_update(
            db.session.query(OverrideRequest).filter_by(id=request_id, company_id=company_id)
        ).first()
        if not request:
            raise OverrideError(APPROVE_FAILED, details={"reason": "request not found"})
        if request.status != "PENDING":
            raise OverrideError(APPROVE_FAILED, details={"reason": f"request is {request.status}"})

        # resolved_at is NULL only while PENDING; a concurrent approval loses here
        claimed = claim_once(OverrideRequest, request.id, "resolved_at", {
            "status": "APPROVED",
            "approved_by_id": approved_by_id,
            "token_hash": token_hash,
            "expires_at": expires_at,
            "resolved_at": now,
        })
        if not claimed:
            raise OverrideError(APPROVE_FAILED, details={"reason": "request already resolved"})

        token_row = OverrideToken(
            company_id=company_id,
            action_code=request.action_code,
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            token_hash=token_hash,
            method=METHOD_REMOTE,
            nonce=generator.nonce(),
            requested_by_id=request.requested_by_id,
            approved_by_id=approved_by_id,
            expires_at=expires_at,
            terminal_id=request.terminal_id,
            request_id=request.id,
            created_at=now,
        )
        db.session.add(token_row)
        db.session.flush()

        record_audit(
            company_id,
            request.action_code,
            "approved",
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            requested_by_id=request.requested_by_id,
            approved_by_id=approved_by_id,
            method=METHOD_REMOTE,
            terminal_id=request.terminal_id,
            meta={"requestId": request.id, "tokenId": token_row.id},
            now=now,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "override approved company=%s request=%s token=%s ttl=%ss",
        company_id, request_id, token_row.id, ttl,
    )
    return {
        "requestId": request_id,
        "token": token,
        "expiresAt": to_utc_z(expires_at),
        "tokenId": token_row.id,
    }


def _check_token(
    token_row: OverrideToken,
    *,
    resource_type: str | None,
    resource_id: str | None,
    now: datetime,
) -> None:
    if token_row.used_at is not None:
        raise OverrideError(TOKEN_ALREADY_USED)
    if as_naive_utc(token_row.expires_at) < now:
        raise OverrideError(TOKEN_EXPIRED)
    # Binding applies only when both sides name the resource
    if token_row.resource_type and resource_type and token_row.resource_type != resource_type:
        raise OverrideError(RESOURCE_MISMATCH)
    if token_row.resource_id and resource_id and token_row.resource_id != resource_id:
        raise OverrideError(RESOURCE_MISMATCH)


def verify_override(
    company_id: int,
    token: str,
    action_code: str,
    used_by_id: int,
    *,
    resource_type: str | None = None,
    resource_id: str | None = None,
    terminal_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Consume a token presented by a terminal.

    Returns {"ok": True, "tokenId"} on success. On rejection raises
    OverrideError with one of: invalid token, token already used,
    token expired, resource mismatch. A "rejected" audit row is committed
    before the error propagates.
    """
    now = as_naive_utc(now) or utcnow()
    _require_company(company_id)
    normalized = normalize_override_token(token)
    token_hash = hash_override_token(normalized)
    # Remote tokens are ten characters; a six-digit code can only be virtual
    attempt_method = (
        METHOD_VIRTUAL
        if terminal_id and virtual_token_service.is_virtual_code(normalized)
        else METHOD_REMOTE
    )

    def _consume() -> OverrideToken:
        token_row = (
            db.session.query(OverrideToken)
            .filter_by(
                company_id=company_id,
                action_code=action_code,
                token_hash=token_hash,
                method=METHOD_REMOTE,
            )
            .first()
        )

        if token_row is None:
            token_row = _consume_virtual(normalized)
        else:
            _check_token(token_row, resource_type=resource_type, resource_id=resource_id, now=now)
            won = claim_once(OverrideToken, token_row.id, "used_at", {
                "used_at": now,
                "used_by_id": used_by_id,
                "result": "approved",
            })
            if not won:
                raise OverrideError(TOKEN_ALREADY_USED)

        record_audit(
            company_id,
            token_row.action_code,
            "approved",
            resource_type=token_row.resource_type,
            resource_id=token_row.resource_id,
            requested_by_id=token_row.requested_by_id,
            approved_by_id=token_row.approved_by_id,
            method=token_row.method,
            terminal_id=terminal_id,
            meta={"tokenId": token_row.id, "usedById": used_by_id},
            now=now,
        )
        db.session.commit()
        return token_row

    def _consume_virtual(code: str) -> OverrideToken:
        if attempt_method != METHOD_VIRTUAL:
            raise OverrideError(INVALID_TOKEN)
        try:
            token_row = virtual_token_service.consume_virtual_code(
                company_id,
                terminal_id,
                code,
                action_code=action_code,
                used_by_id=used_by_id,
                resource_type=resource_type,
                resource_id=resource_id,
                now=now,
            )
        except virtual_token_service.VirtualCodeReplayError:
            raise OverrideError(TOKEN_ALREADY_USED)
        if token_row is None:
            raise OverrideError(INVALID_TOKEN)
        return token_row

    try:
        token_row = run_with_retry(_consume)
    except OverrideError as exc:
        db.session.rollback()
        logger.warning(
            "override verify rejected company=%s action=%s terminal=%s: %s",
            company_id, action_code, terminal_id, exc.message,
        )
        record_audit_now(
            company_id,
            action_code,
            "rejected",
            resource_type=resource_type,
            resource_id=resource_id,
            requested_by_id=used_by_id,
            approved_by_id=None,
            method=attempt_method,
            terminal_id=terminal_id,
            meta={"error": exc.message},
            now=now,
        )
        raise
    except Exception:
        db.session.rollback()
        raise

    logger.info("override verified company=%s token=%s", company_id, token_row.id)
    return {"ok": True, "tokenId": token_row.id}


def get_override_requests(
    company_id: int,
    status: str | None = None,
    limit: int | None = None,
) -> list[OverrideRequest]:
    """Most recent requests for one company, optionally filtered by status."""
    query = db.session.query(OverrideRequest).filter(OverrideRequest.company_id == company_id)

    if status:
        status = status.strip().upper()
        if status not in REQUEST_STATUSES:
            raise ValidationError(issues=[{
                "path": ["status"],
                "message": f"Expected one of: {', '.join(REQUEST_STATUSES)}",
            }])
        query = query.filter(OverrideRequest.status == status)

    limit = min(limit or 50, MAX_PAGE_SIZE)
    return (
        query.order_by(OverrideRequest.created_at.desc(), OverrideRequest.id.desc())
        .limit(limit)
        .all()
    )
