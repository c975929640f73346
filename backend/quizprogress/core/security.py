"""
JWT utilities for resolving learner identity from bearer tokens.

Tokens are issued by the surrounding learning application. This service
verifies them and reads the `learner_id` claim (the learner's external id);
create_access_token exists for that application and for tests.
"""
from datetime import timedelta
import uuid

from quizprogress.core.datetime_utils import utc_now
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from quizprogress.core.config import settings

LEARNER_ID_CLAIM = "learner_id"


def create_access_token(
    learner_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for a learner.

    Args:
        learner_id: Learner external id to store in the learner_id claim
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    now = utc_now()
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        LEARNER_ID_CLAIM: learner_id,
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def learner_ref_from_payload(payload: Dict[str, Any]) -> Optional[str]:
    """Extract the learner reference from an access token payload."""
    if payload.get("type", "access") != "access":
        return None
    learner_id = payload.get(LEARNER_ID_CLAIM)
    if learner_id is None or learner_id == "":
        return None
    return str(learner_id)
