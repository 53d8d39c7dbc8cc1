"""
Bearer-token authentication for the FastAPI API.

Tokens are HS256 JWTs carrying the principal id in ``userId`` (or ``sub``).
Issuing tokens belongs to a separate identity service; ``create_access_token``
exists for development tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from catalog.errors import Unauthenticated

logger = structlog.get_logger(__name__)

# Security scheme; missing or non-bearer credentials are reported by PrincipalResolver
security = HTTPBearer(auto_error=False)


class PrincipalResolver:
    """Validates bearer credentials and yields the principal id."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def resolve(self, authorization: Optional[str]) -> str:
        """
        Resolve an ``Authorization`` header value.

        Args:
            authorization: Raw header value, e.g. ``Bearer <token>``

        Returns:
            Principal id

        Raises:
            Unauthenticated: With a reason distinguishing missing, expired and
                malformed credentials
        """
        if not authorization:
            raise Unauthenticated(Unauthenticated.MISSING_TOKEN,
                                  "No token provided. Authorization denied.")

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise Unauthenticated(Unauthenticated.MISSING_TOKEN,
                                  "No token provided. Authorization denied.")

        return self.resolve_token(token.strip())

    def resolve_token(self, token: str) -> str:
        """Decode a bare JWT and return its principal id."""
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Expired token presented")
            raise Unauthenticated(Unauthenticated.TOKEN_EXPIRED, "Token expired. Please login again.")
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token presented", error=str(e))
            raise Unauthenticated(Unauthenticated.INVALID_TOKEN, "Invalid token. Please login again.")

        principal_id = claims.get("userId") or claims.get("sub")
        if not principal_id:
            logger.warning("Token without principal presented")
            raise Unauthenticated(Unauthenticated.MISSING_SUBJECT, "Token does not identify a user.")

        return str(principal_id)


def create_access_token(
    principal_id: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60
) -> str:
    """
    Mint a signed token for ``principal_id``.

    Args:
        principal_id: User identifier placed in ``sub`` and ``userId``
        secret_key: Signing secret
        algorithm: JWT algorithm
        expires_minutes: Lifetime; negative values produce an expired token

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": principal_id,
        "userId": principal_id,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    FastAPI dependency returning the authenticated principal id.

    Bearer credentials parsed by ``security`` are decoded directly; anything
    else falls back to the raw header so the failure reason stays specific.

    Raises:
        Unauthenticated: If the request carries no valid credential
    """
    resolver: PrincipalResolver = request.app.state.principal_resolver
    token = credentials.credentials.strip() if credentials else ""
    if not token:
        return resolver.resolve(request.headers.get("Authorization"))
    return resolver.resolve_token(token)
