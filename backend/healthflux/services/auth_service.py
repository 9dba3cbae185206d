"""
HealthFlux Backend — Authentication Service
============================================

What:  Resolves the caller's identity from an incoming request.
How:   Reads a session token from `Authorization: Bearer <token>` or the
       session cookie, verifies it as an HS256 JWT with python-jose, and maps
       the claims onto an Identity. Anything else raises AuthenticationError.
Who:   The `get_current_user` dependency, evaluated before every handler body.

Scope:
    This is the only gate in the service: a resolvable identity is required,
    nothing more. Whether that identity may read a given profile_id is not
    checked here.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from starlette.requests import HTTPConnection

from healthflux.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """The logged-in caller, as carried in the session token claims."""

    id: str
    email: str
    full_name: Optional[str] = None
    role: str = "user"


class AuthService:
    """
    Verifies session tokens.

    Args:
        secret: Shared HS256 secret. An empty secret rejects every token.
        algorithm: JWT algorithm (default HS256).
        cookie_name: Session cookie consulted when no bearer header is sent.
        token_minutes: Lifetime of tokens signed by issue_token().
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        cookie_name: str = "access_token",
        token_minutes: int = 60,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.cookie_name = cookie_name
        self.token_minutes = token_minutes

    def extract_token(self, connection: HTTPConnection) -> Optional[str]:
        header = connection.headers.get("Authorization", "")
        scheme, _, credentials = header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        cookie = connection.cookies.get(self.cookie_name)
        return cookie or None

    def decode(self, token: str) -> Identity:
        """Verify a token and return its Identity, or raise AuthenticationError."""
        if not self.secret:
            logger.error("JWT_SECRET is not configured; rejecting token")
            raise AuthenticationError()

        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationError(message="Session expired")
        except JWTError as e:
            logger.info("Rejected session token: %s", str(e))
            raise AuthenticationError()

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            raise AuthenticationError(context={"reason": "missing sub/email claim"})

        return Identity(
            id=str(subject),
            email=email,
            full_name=claims.get("full_name"),
            role=claims.get("role", "user"),
        )

    def authenticate(self, connection: HTTPConnection) -> Identity:
        token = self.extract_token(connection)
        if token is None:
            raise AuthenticationError()
        return self.decode(token)

    def issue_token(self, identity: Identity, expires_minutes: Optional[int] = None) -> str:
        """Sign a session token for `identity` (used by local tooling and tests)."""
        if expires_minutes is None:
            expires_minutes = self.token_minutes
        expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
        claims = {
            "sub": identity.id,
            "email": identity.email,
            "full_name": identity.full_name,
            "role": identity.role,
            "exp": expire,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)
