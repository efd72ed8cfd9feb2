# Overview: Service-layer operations for virtual (TOTP) override tokens.

"""
Virtual override tokens

Instead of approving each request remotely, an owner can provision a
terminal with a TOTP secret (RFC 6238: HMAC-SHA1, 6 digits, 30 s period).
The supervisor keeps the secret in an authenticator app and reads the
current code to the cashier. verify_override falls back to this path when
no remote token matches and the terminal sent a 6-digit code.

Accepted codes are recorded as used OverrideToken rows (method "virtual",
nonce = TOTP time step), so a code cannot be replayed inside its window.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import struct
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, urlencode

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Company, OverrideToken, VirtualTokenSecret
from ..models.override import METHOD_VIRTUAL
from ..time_utils import as_naive_utc, to_utc_z, utcnow
from .audit_service import record_audit
from .token_utils import TokenGenerator, hash_override_token


TOTP_DIGITS = 6
TOTP_PERIOD_SECONDS = 30
TOTP_WINDOW_STEPS = 1
SECRET_BYTES = 20

PROVISION_ACTION_CODE = "VIRTUAL_TOKEN_PROVISION"


class VirtualCodeReplayError(Exception):
    """Raised when an already accepted TOTP code is presented again."""


def generate_secret(generator: TokenGenerator | None = None) -> str:
    """Base32 secret without padding, as authenticator apps expect."""
    generator = generator or TokenGenerator()
    return base64.b32encode(generator.secret_bytes(SECRET_BYTES)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    padding = "=" * (-len(secret) % 8)
    return base64.b32decode(secret.upper() + padding)


def time_step(now: datetime) -> int:
    aware = now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now
    return int(aware.timestamp()) // TOTP_PERIOD_SECONDS


def code_at(secret: str, counter: int) -> str:
    """HOTP value (RFC 4226) for one counter."""
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10 ** TOTP_DIGITS)).zfill(TOTP_DIGITS)


def current_code(secret: str, now: datetime | None = None) -> str:
    return code_at(secret, time_step(now or utcnow()))


def match_step(secret: str, code: str, now: datetime) -> int | None:
    """Time step the code belongs to, within +/- TOTP_WINDOW_STEPS, or None."""
    if not is_virtual_code(code):
        return None
    expected = code.encode("ascii")
    step = time_step(now)
    for delta in range(-TOTP_WINDOW_STEPS, TOTP_WINDOW_STEPS + 1):
        if hmac.compare_digest(code_at(secret, step + delta).encode("ascii"), expected):
            return step + delta
    return None


def is_virtual_code(code: str) -> bool:
    return len(code) == TOTP_DIGITS and code.isascii() and code.isdigit()


def build_otpauth_uri(secret: str, *, issuer: str, account: str) -> str:
    label = quote(f"{issuer}:{account}")
    params = urlencode({
        "secret": secret,
        "issuer": issuer,
        "digits": TOTP_DIGITS,
        "period": TOTP_PERIOD_SECONDS,
    })
    return f"otpauth://totp/{label}?{params}"


def get_active_secret(company_id: int, terminal_id: str) -> VirtualTokenSecret | None:
    return (
        db.session.query(VirtualTokenSecret)
        .filter_by(company_id=company_id, terminal_id=terminal_id, is_active=True)
        .order_by(VirtualTokenSecret.id.desc())
        .first()
    )


def provision_virtual_token(
    company_id: int,
    user_id: int,
    terminal_id: str,
    uid: str | None = None,
    *,
    issuer: str = "FULLPOS",
    now: datetime | None = None,
    generator: TokenGenerator | None = None,
) -> dict:
    """
    Issue a new TOTP secret for a terminal, revoking the previous one.

    The secret is returned once; afterwards only its metadata is readable.
    """
    now = as_naive_utc(now) or utcnow()

    company = db.session.get(Company, company_id)
    if not company:
        raise ValueError("Company not found")

    try:
        (
            db.session.query(VirtualTokenSecret)
            .filter_by(company_id=company_id, terminal_id=terminal_id, is_active=True)
            .update({"is_active": False, "revoked_at": now}, synchronize_session=False)
        )

        secret = generate_secret(generator)
        row = VirtualTokenSecret(
            company_id=company_id,
            terminal_id=terminal_id,
            uid=uid,
            secret=secret,
            provisioned_by_id=user_id,
            is_active=True,
            created_at=now,
        )
        db.session.add(row)
        db.session.flush()

        record_audit(
            company_id,
            PROVISION_ACTION_CODE,
            "provisioned",
            approved_by_id=user_id,
            method=METHOD_VIRTUAL,
            terminal_id=terminal_id,
            meta={"secretId": row.id, "uid": uid},
            now=now,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return {
        "terminalId": terminal_id,
        "secret": secret,
        "otpauthUri": build_otpauth_uri(secret, issuer=issuer, account=f"{company.name} {terminal_id}"),
        "method": METHOD_VIRTUAL,
        "digits": TOTP_DIGITS,
        "period": TOTP_PERIOD_SECONDS,
        "provisionedAt": to_utc_z(now),
    }


def consume_virtual_code(
    company_id: int,
    terminal_id: str,
    code: str,
    *,
    action_code: str,
    used_by_id: int,
    resource_type: str | None = None,
    resource_id: str | None = None,
    now: datetime,
) -> OverrideToken | None:
    """
    Accept a TOTP code for a terminal, recording it as a used token.

    Returns None when the terminal has no active secret or the code does
    not match. Raises VirtualCodeReplayError when the code was already
    accepted. Flushes but does not commit; the caller owns the transaction.
    """
    secret_row = get_active_secret(company_id, terminal_id)
    if secret_row is None:
        return None

    step = match_step(secret_row.secret, code, now)
    if step is None:
        return None

    # Scoped to the secret so two terminals showing the same digits never collide
    token_hash = hash_override_token(f"V{secret_row.id}:{code}")
    nonce = str(step)

    existing = (
        db.session.query(OverrideToken.id)
        .filter_by(company_id=company_id, token_hash=token_hash, nonce=nonce)
        .first()
    )
    if existing:
        raise VirtualCodeReplayError(code)

    step_end = datetime.fromtimestamp((step + 1) * TOTP_PERIOD_SECONDS, tz=timezone.utc).replace(tzinfo=None)
    token_row = OverrideToken(
        company_id=company_id,
        action_code=action_code,
        resource_type=resource_type,
        resource_id=resource_id,
        token_hash=token_hash,
        method=METHOD_VIRTUAL,
        nonce=nonce,
        requested_by_id=used_by_id,
        approved_by_id=secret_row.provisioned_by_id,
        terminal_id=terminal_id,
        expires_at=step_end + timedelta(seconds=TOTP_WINDOW_STEPS * TOTP_PERIOD_SECONDS),
        used_at=now,
        used_by_id=used_by_id,
        result="approved",
        created_at=now,
    )
    db.session.add(token_row)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise VirtualCodeReplayError(code)
    return token_row
