"""Principal and token verification.

Identity is owned upstream: tokens are issued by the auth service and carry
the user id (``userId`` or ``sub``) and the role. This module only verifies
them and turns the claims into a ``Principal``.
"""

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt
import structlog

logger = structlog.get_logger(__name__)


class Role(Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    RESTAURANT_OWNER = "restaurant_owner"
    DELIVERY_PARTNER = "delivery_partner"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_partner(self) -> bool:
        return self.role == Role.DELIVERY_PARTNER.value

    def has_role(self, *roles: Role) -> bool:
        return self.role in {role.value for role in roles}


class InvalidToken(Exception):
    """The token is missing, malformed, expired or signed with another key."""


class TokenVerifier:
    """Verifies HMAC-signed JWTs and extracts the principal."""

    def __init__(self, secret: str | None = None, algorithm: str | None = None) -> None:
        self.secret = secret or os.environ.get("JWT_SECRET", "dev-secret")
        self.algorithm = algorithm or os.environ.get("JWT_ALGORITHM", "HS256")

    def verify(self, token: str | None) -> Principal:
        if not token:
            raise InvalidToken("Token missing")
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            raise InvalidToken(str(exc)) from exc

        user_id = claims.get("userId") or claims.get("sub") or claims.get("id")
        role = claims.get("role")
        if not user_id or not role:
            raise InvalidToken("Token lacks userId or role")
        return Principal(id=str(user_id), role=str(role))

    def identify(self, token: str | None) -> Principal | None:
        """Soft variant of ``verify``: returns None instead of raising."""
        if not token:
            return None
        try:
            return self.verify(token)
        except InvalidToken as exc:
            logger.warning("Token verification failed", reason=str(exc))
            return None

    def issue(self, principal: Principal, ttl: timedelta = timedelta(hours=12)) -> str:
        """Sign a token for ``principal`` (local development and tests)."""
        now = datetime.now(UTC)
        claims = {
            "userId": principal.id,
            "role": principal.role,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
