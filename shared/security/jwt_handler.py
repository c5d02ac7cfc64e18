"""
Client-side reading of bearer tokens.

The client never holds the signing secret, so claims are read unverified.
They are only used to schedule local expiry; the backend stays the authority.
"""
from datetime import datetime, timezone
from typing import Optional

from jose import JWTError, jwt


def read_token_claims(token: str) -> dict | None:
    """Returns the unverified claims, or None for anything that is not a JWT."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def token_issued_at(token: str) -> Optional[float]:
    """`iat` claim as epoch seconds, if the token carries one."""
    claims = read_token_claims(token)
    if not claims or "iat" not in claims:
        return None
    try:
        return float(claims["iat"])
    except (TypeError, ValueError):
        return None


def is_token_expired(token: str, now: Optional[float] = None) -> bool:
    """True only when the token carries an `exp` claim that has passed."""
    claims = read_token_claims(token)
    if not claims or "exp" not in claims:
        return False
    if now is None:
        now = datetime.now(timezone.utc).timestamp()
    try:
        return float(claims["exp"]) <= now
    except (TypeError, ValueError):
        return False
