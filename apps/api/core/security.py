"""
Credential primitives: bcrypt password hashes, HS256 access tokens and
opaque refresh tokens.

Access token expiry is checked against core.clock rather than by python-jose,
so the whole auth flow follows one clock. Refresh tokens are 256 random bits;
only their SHA-256 is ever stored.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import bcrypt
from jose import JWTError, jwt

from core import clock
from core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
REFRESH_TOKEN_BYTES = 32


class TokenExpired(Exception):
    pass


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    """Sign `data` plus iat/exp. Returns (token, expires_at)."""
    issued_at = clock.utcnow()
    expires_at = issued_at + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {**data, "iat": int(issued_at.timestamp()), "exp": int(expires_at.timestamp())}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM), expires_at


def decode_access_token(token: str) -> Optional[Dict]:
    """
    Claims of a well-signed token, or None when the token is malformed or
    signed with another key. Raises TokenExpired once `exp` has passed.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": False})
    except JWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    if exp <= clock.utcnow().timestamp():
        raise TokenExpired()
    return claims


def generate_refresh_token() -> str:
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
