"""
FastAPI identity dependencies.

A learner is identified by the `user` field/parameter a client sends, or
else by the learner_id claim of an `Authorization: Bearer` token. No
permissions are checked; the identity is only resolved.
"""
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.models import get_db, Learner
from .security import decode_token, learner_ref_from_payload
from .error_responses import ErrorMessages, raise_unauthorized
from .queries import get_learner_by_external_id

# HTTP Bearer token scheme that doesn't fail on missing auth
security_optional = HTTPBearer(auto_error=False)


def _decode_learner_ref(token: str) -> str:
    """
    Decode a bearer token and return its learner reference.

    Raises:
        HTTPException: 401 if the token is invalid or lacks learner_id
    """
    payload = decode_token(token)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    learner_ref = learner_ref_from_payload(payload)
    if learner_ref is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)
    return learner_ref


async def get_token_learner_ref(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
) -> Optional[str]:
    """
    Learner reference from the bearer token, if one was sent.

    Returns None when there is no Authorization header.

    Raises:
        HTTPException: 401 if a token was sent but is invalid
    """
    if credentials is None:
        return None
    return _decode_learner_ref(credentials.credentials)


def resolve_learner_ref(
    explicit_ref: Optional[str], token_ref: Optional[str]
) -> str:
    """
    Pick the learner reference for a request.

    An explicit `user` value wins over the token.

    Raises:
        HTTPException: 401 if neither is available
    """
    learner_ref = explicit_ref or token_ref
    if not learner_ref:
        raise_unauthorized(ErrorMessages.LEARNER_IDENTITY_REQUIRED)
    return learner_ref


async def get_current_learner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    db: AsyncSession = Depends(get_db),
) -> Learner:
    """
    Get the learner identified by the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names an
            unknown learner
    """
    if credentials is None:
        raise_unauthorized(ErrorMessages.LEARNER_IDENTITY_REQUIRED)

    learner_ref = _decode_learner_ref(credentials.credentials)
    learner = await get_learner_by_external_id(db, learner_ref)
    if learner is None:
        raise_unauthorized(ErrorMessages.LEARNER_NOT_FOUND_AUTH)
    return learner
