"""
JWT token issuer adapter - Implements TokenIssuer protocol.

Session credentials are HMAC-signed JSON Web Tokens (PyJWT) carrying the
account id, email and role, valid for a configurable number of days.
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt

from src.domain.exceptions import InvalidToken
from src.domain.ports import TokenClaims

logger = logging.getLogger(__name__)


class JwtTokenIssuer:
    """
    Implements TokenIssuer protocol via PyJWT.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_days: int = 7) -> None:
        if not secret:
            raise ValueError("A signing secret is required to issue tokens")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(days=ttl_days)

    def issue(self, account_id: int, email: str, role: str) -> str:
        """Mint a signed session token for the account."""
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(account_id),
            "id": account_id,
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a session token.

        Raises:
            InvalidToken: Expired, badly signed or missing required claims
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Session expired") from None
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected session token: %s", exc)
            raise InvalidToken("Invalid session token") from None

        try:
            return TokenClaims(
                account_id=int(payload["sub"]),
                email=payload["email"],
                role=payload["role"],
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidToken("Invalid session token") from None
