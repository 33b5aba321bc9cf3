"""Bearer token decoding for authenticated routes."""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt

from ..config import settings


class InvalidTokenError(Exception):
    """Signature, structure or subject claim is wrong."""


class ExpiredTokenError(Exception):
    """Token was valid once; its exp claim is in the past."""


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: uuid.UUID
    expires_at: datetime | None


def decode_access_token(token: str) -> AccessTokenClaims:
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredTokenError from exc
    except jwt.PyJWTError as exc:
        raise InvalidTokenError from exc

    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except (KeyError, ValueError) as exc:
        raise InvalidTokenError("token subject is not a user id") from exc

    exp = claims.get("exp")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None
    return AccessTokenClaims(user_id=user_id, expires_at=expires_at)
