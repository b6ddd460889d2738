import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi_users.jwt import decode_jwt, generate_jwt

from journalbook.errors import Forbidden, Unauthorized
from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "journalbook:auth"

bearer_scheme = HTTPBearer(auto_error=False)


def _secret() -> str:
    secret = (settings.SECRET or "").strip()
    if not secret or secret == "CHANGE_ME_SECRET":
        raise RuntimeError(
            "SECRET environment variable must be set to a strong value; the default placeholder is not allowed."
        )
    return secret


# -------------------------
# Token issue / verify
# -------------------------
def issue_token(user_id: str, **claims) -> str:
    data = {"sub": user_id, "aud": TOKEN_AUDIENCE, **claims}
    return generate_jwt(data, _secret(), settings.TOKEN_LIFETIME_SECONDS)


def verify_token(token: str) -> dict:
    """Decode a bearer token into its claims; ``sub`` is the user id."""
    try:
        claims = decode_jwt(token, _secret(), [TOKEN_AUDIENCE])
    except jwt.PyJWTError as exc:
        raise Unauthorized(f"invalid token: {exc}") from exc
    if not claims.get("sub"):
        raise Unauthorized("token without subject")
    return claims


# -------------------------
# Dependencies
# -------------------------
async def token_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """User id from the bearer token, or None when auth is switched off."""
    if not settings.REQUIRE_AUTH:
        return None
    if not credentials or not credentials.credentials:
        raise Unauthorized("missing bearer token")
    return verify_token(credentials.credentials)["sub"]


def ensure_same_user(subject: Optional[str], user_id: str) -> None:
    if subject is None:
        return
    if subject != user_id:
        logger.warning("Token subject %s tried to access user %s", subject, user_id)
        raise Forbidden(f"subject {subject} may not access {user_id}")


async def require_path_user(userId: str, subject: Optional[str] = Depends(token_subject)) -> str:
    ensure_same_user(subject, userId)
    return userId
