from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import requests
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from company_os.core.config import settings
from company_os.core.context import set_current_user_id
from company_os.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthContext:
    user_id: str
    org_id: str | None = None
    claims: dict = field(default_factory=dict)


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=5)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise UnauthorizedError() from exc

    kid = unverified_header.get("kid")
    if not kid:
        logger.info("Rejected token without key id")
        raise UnauthorizedError()

    jwks = jwks_cache.get(settings.clerk_jwks_url)
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    logger.info("Rejected token signed with unknown key id=%s", kid)
    raise UnauthorizedError()


def _decode_clerk_jwt(token: str) -> dict:
    key = _get_signing_key(token)

    options = {"verify_aud": bool(settings.clerk_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=settings.clerk_issuer,
            audience=settings.clerk_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise UnauthorizedError() from exc


def authenticate_token(token: str | None) -> AuthContext:
    if not token:
        raise UnauthorizedError()

    claims = _decode_clerk_jwt(token)
    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError()

    return AuthContext(user_id=str(subject), org_id=claims.get("org_id"), claims=claims)


async def require_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext:
    context = authenticate_token(credentials.credentials if credentials else None)

    request.state.user_id = context.user_id
    request.state.auth_claims = context.claims
    set_current_user_id(context.user_id)

    return context
