"""Dual-scheme bearer token verification.

This module provides:
- HS256 JWT encode/decode against an explicit secret
- TokenVerifier: accepts tokens from the native issuer or the legacy CMS and
  normalizes both into one claim shape tagged with the scheme
- FastAPI dependencies that read ``Authorization: Bearer <token>``

Verification failure is a value, not an exception: an unauthenticated caller
is routine, and every failure looks the same to the outside.
"""
import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from fastapi import Depends, Header, HTTPException, Query

from .config import auth_settings
from .models import NormalizedClaim, Scheme

# Lowest-privilege role in the legacy vocabulary; used when a legacy token omits it.
LEGACY_DEFAULT_ROLE = "talent"

NOT_AUTHENTICATED = "not_authenticated"


class TokenError(Exception):
    """Token could not be validated; ``reason`` is for debug logs only."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


@dataclass(frozen=True)
class VerificationFailure:
    reason: str = "invalid"

    def __bool__(self) -> bool:
        return False


Verification = Union[NormalizedClaim, VerificationFailure]


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    pad = 4 - (len(s) % 4)
    if pad and pad < 4:
        s = s + ("=" * pad)
    return base64.urlsafe_b64decode(s)


def encode_token(payload: dict, secret: str, ttl: Optional[int] = None, now: Optional[float] = None) -> str:
    """Mint an HS256 token. ``ttl=None`` keeps any ``exp`` already in ``payload``."""
    header = {"alg": "HS256", "typ": "JWT"}
    body = dict(payload)
    if ttl is not None:
        issued = int(now if now is not None else time.time())
        body.update({"iat": issued, "exp": issued + ttl})
    h = _b64url(json.dumps(header, separators=(",", ":")).encode())
    b = _b64url(json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode())
    signing = f"{h}.{b}".encode()
    sig = hmac.new(secret.encode(), signing, hashlib.sha256).digest()
    return f"{h}.{b}.{_b64url(sig)}"


def decode_token(token: str, secret: str, now: float) -> dict:
    """Validate signature and time claims; return the payload or raise TokenError."""
    try:
        h, b, s = token.split(".")
        header = json.loads(_b64url_decode(h))
        got_sig = _b64url_decode(s)
    except Exception:
        raise TokenError("malformed")
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise TokenError("unsupported_alg")
    exp_sig = hmac.new(secret.encode(), f"{h}.{b}".encode(), hashlib.sha256).digest()
    if not hmac.compare_digest(exp_sig, got_sig):
        raise TokenError("bad_signature")
    try:
        body = json.loads(_b64url_decode(b))
    except Exception:
        raise TokenError("malformed_payload")
    if not isinstance(body, dict):
        raise TokenError("malformed_payload")
    try:
        if body.get("exp") is not None and float(body["exp"]) < now:
            raise TokenError("expired")
        if body.get("nbf") is not None and float(body["nbf"]) > now:
            raise TokenError("not_yet_valid")
    except (TypeError, ValueError):
        raise TokenError("bad_time_claim")
    return body


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    return s or None


def _verbatim(value: Any) -> Optional[str]:
    """Native claim fields are copied as issued; only non-strings are converted."""
    if value is None or isinstance(value, bool):
        return None
    s = value if isinstance(value, str) else str(value)
    return s if s.strip() else None


def _native_claim(body: dict) -> NormalizedClaim:
    subject = _verbatim(body.get("user_id"))
    role = _verbatim(body.get("user_role"))
    if not subject or not role:
        raise TokenError("native_subject_missing")
    return NormalizedClaim(
        subject_id=subject,
        subject_email=_verbatim(body.get("user_email")),
        subject_role=role,
        scheme=Scheme.NATIVE,
    )


def _legacy_claim(body: dict) -> NormalizedClaim:
    # Shape (a): JWT Auth plugin, subject nested under data.user.
    data = body.get("data")
    user = data.get("user") if isinstance(data, dict) else None
    if isinstance(user, dict):
        subject = _text(user.get("id"))
        if subject:
            roles = user.get("roles")
            role = _text(roles[0]) if isinstance(roles, list) and roles else None
            return NormalizedClaim(
                subject_id=subject,
                subject_email=_text(user.get("user_email")) or _text(user.get("email")),
                subject_role=role or LEGACY_DEFAULT_ROLE,
                scheme=Scheme.LEGACY,
            )
    # Shape (b): flat payload.
    subject = _text(body.get("user_id")) or _text(body.get("userId"))
    if not subject:
        raise TokenError("legacy_subject_missing")
    return NormalizedClaim(
        subject_id=subject,
        subject_email=_text(body.get("user_email")) or _text(body.get("email")),
        subject_role=_text(body.get("user_role")) or _text(body.get("role")) or LEGACY_DEFAULT_ROLE,
        scheme=Scheme.LEGACY,
    )


class TokenVerifier:
    def __init__(self, native_secret: str, legacy_secret: str, clock: Callable[[], float] = time.time):
        self.native_secret = native_secret
        self.legacy_secret = legacy_secret
        self.clock = clock

    @classmethod
    def from_settings(cls) -> "TokenVerifier":
        cfg = auth_settings()
        return cls(cfg.native_secret, cfg.legacy_secret)

    def verify(self, token: Optional[str]) -> Verification:
        if not token or not isinstance(token, str):
            return VerificationFailure("missing")
        now = self.clock()
        try:
            claim = _native_claim(decode_token(token, self.native_secret, now))
            logging.debug(f"AUTH verified scheme=native subject={claim.subject_id}")
            return claim
        except TokenError as e:
            native_reason = e.reason
        try:
            claim = _legacy_claim(decode_token(token, self.legacy_secret, now))
            logging.debug(f"AUTH verified scheme=legacy subject={claim.subject_id}")
            return claim
        except TokenError as e:
            legacy_reason = e.reason
        logging.debug(
            f"AUTH rejected hint={peek_scheme(token)} native={native_reason} legacy={legacy_reason}"
        )
        # Report the failure from the scheme whose signature checked out, if any.
        if legacy_reason == "bad_signature":
            return VerificationFailure(native_reason)
        return VerificationFailure(legacy_reason)


def peek_scheme(token: str) -> str:
    """Classify a token WITHOUT verifying it. For log lines only, never for access."""
    try:
        body = json.loads(_b64url_decode(token.split(".")[1]))
    except Exception:
        return "unknown"
    if not isinstance(body, dict):
        return "unknown"
    iss = str(body.get("iss") or "")
    if isinstance(body.get("data"), dict) or "wordpress" in iss.lower() or "userId" in body:
        return Scheme.LEGACY.value
    if body.get("user_id") and body.get("user_email") and body.get("user_role"):
        return Scheme.NATIVE.value
    return "unknown"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def get_verifier() -> TokenVerifier:
    return TokenVerifier.from_settings()


def optional_claim(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    token: Optional[str] = Query(default=None),
    verifier: TokenVerifier = Depends(get_verifier),
) -> Optional[NormalizedClaim]:
    """Normalized claim for the presented credential, or None when unauthenticated.

    Legacy mobile builds send the token as a ``token`` query parameter instead
    of a header; the header wins when both are present.
    """
    tok = bearer_token(authorization) or token
    result = verifier.verify(tok)
    return result or None


def require_claim(claim: Optional[NormalizedClaim] = Depends(optional_claim)) -> NormalizedClaim:
    if claim is None:
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED)
    return claim
