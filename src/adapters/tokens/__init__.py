"""Token adapters - Session credential signing."""

from .jwt_issuer import JwtTokenIssuer

__all__ = ["JwtTokenIssuer"]
