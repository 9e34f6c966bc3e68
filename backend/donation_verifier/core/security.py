"""Authentication for the manual re-processing endpoint.

Callers present a Bearer JWT issued by the app's identity provider.
Tokens are verified with ``python-jose`` against ``AUTH_JWT_SECRET``
using ``AUTH_JWT_ALGORITHM``.  When ``AUTH_JWT_AUDIENCE`` is set the
``aud`` claim is verified too; otherwise audience verification is
disabled.  No role is required: any authenticated caller may ask for a
donation to be processed again.

``DEV_AUTH_BYPASS`` short-circuits verification for local testing.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from donation_verifier.core.config import settings


logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

DEV_CALLER: Dict[str, Any] = {"sub": "dev_user", "dev": True}


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a caller JWT.

    Raises:
        HTTPException: 500 if no signing secret is configured, 401 if the
            token is malformed, expired or carries no ``sub`` claim.
    """
    if not settings.AUTH_JWT_SECRET:
        raise HTTPException(status_code=500, detail="AUTH_JWT_SECRET is not configured")
    decode_kwargs: Dict[str, Any] = {"algorithms": [settings.AUTH_JWT_ALGORITHM], "options": {}}
    if settings.AUTH_JWT_AUDIENCE:
        decode_kwargs["audience"] = settings.AUTH_JWT_AUDIENCE
    else:
        decode_kwargs["options"]["verify_aud"] = False
    try:
        payload = jwt.decode(token, settings.AUTH_JWT_SECRET, **decode_kwargs)
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {exc}") from exc
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: no sub claim")
    return payload


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
) -> Dict[str, Any]:
    """Resolve the authenticated caller's claims."""
    if settings.DEV_AUTH_BYPASS:
        logger.info("[auth] DEV_AUTH_BYPASS active, returning dev caller")
        return dict(DEV_CALLER)
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User must be authenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(credentials.credentials)
