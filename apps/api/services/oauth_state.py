"""
Signed OAuth `state` values.

Binds a provider consent round-trip to the user that started it. The value is
`<base64url(json payload)>.<base64url(hmac-sha256)>`, keyed with SECRET_KEY.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
from typing import Any, Dict, Optional

from core import clock
from core.config import settings


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("utf-8"))


def _sign(payload_b64: str) -> str:
    key = settings.SECRET_KEY.encode("utf-8")
    return _b64url_encode(hmac.new(key, payload_b64.encode("utf-8"), hashlib.sha256).digest())


def create_oauth_state(user_id: str, provider: str) -> str:
    payload = {
        "sub": user_id,
        "provider": provider,
        "nonce": secrets.token_urlsafe(8),
        "iat": int(clock.utcnow().timestamp()),
    }
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    payload_b64 = _b64url_encode(raw)
    return f"{payload_b64}.{_sign(payload_b64)}"


def verify_oauth_state(token: str, *, ttl_s: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """Return the payload if the signature matches and the state is fresh, else None."""
    payload_b64, _, sig = (token or "").partition(".")
    if not payload_b64 or not sig:
        return None
    if not hmac.compare_digest(sig, _sign(payload_b64)):
        return None
    try:
        payload = json.loads(_b64url_decode(payload_b64))
        iat = int(payload["iat"])
    except (binascii.Error, ValueError, KeyError, TypeError):
        return None

    ttl = settings.OAUTH_STATE_TTL_S if ttl_s is None else ttl_s
    if ttl > 0 and int(clock.utcnow().timestamp()) - iat > ttl:
        return None
    return payload
