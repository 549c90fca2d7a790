"""
Internal JWT Authentication Module

Administrative endpoints (join, process, uploads, debugging) accept internal
JWTs minted by the operator's gateway. The calling webhook is not covered:
Graph cannot present these tokens.

JWT Claims Contract:
- sub: string (required) - Operator or service identity
- iss: string (required) - Issuer, must match INTERNAL_JWT_ISSUER
- aud: string (required) - Audience, must match INTERNAL_JWT_AUDIENCE
- iat: number (required) - Issued-at timestamp
- exp: number (required) - Expiration timestamp

Security:
- Uses HMAC-SHA256 (HS256) symmetric signing
- Never logs full JWT tokens
- When INTERNAL_JWT_SECRET is unset, verification is disabled (local development)
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass

import jwt
from fastapi import Header
from jwt.exceptions import (
    InvalidTokenError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidAudienceError,
)

from utils.errors import AuthenticationError

logger = logging.getLogger(__name__)

# Clock skew tolerance in seconds (for exp validation)
CLOCK_SKEW_LEEWAY = 30

MIN_SECRET_LENGTH = 32


@dataclass
class JWTClaims:
    """
    Validated claims extracted from an internal JWT.

    Attributes:
        subject: Caller identity from the `sub` claim
        issued_at: Unix timestamp when the token was issued
        expires_at: Unix timestamp when the token expires
    """
    subject: str
    issued_at: int
    expires_at: int


class JWTVerificationError(Exception):
    """
    Raised when JWT verification fails.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging
    """
    def __init__(self, message: str, code: str = "JWT_INVALID"):
        self.message = message
        self.code = code
        super().__init__(message)


def get_jwt_config() -> tuple[str, str, str]:
    """
    Get JWT configuration from environment variables.

    Returns:
        Tuple of (secret, issuer, audience)

    Raises:
        JWTVerificationError: If the secret is missing or too short
    """
    secret = os.getenv("INTERNAL_JWT_SECRET")
    issuer = os.getenv("INTERNAL_JWT_ISSUER", "internal-gateway")
    audience = os.getenv("INTERNAL_JWT_AUDIENCE", "meeting-minutes-bot")

    if not secret:
        logger.error("INTERNAL_JWT_SECRET not configured")
        raise JWTVerificationError(
            "JWT verification not configured",
            code="JWT_NOT_CONFIGURED"
        )

    if len(secret) < MIN_SECRET_LENGTH:
        logger.error(f"INTERNAL_JWT_SECRET is too short (min {MIN_SECRET_LENGTH} chars)")
        raise JWTVerificationError(
            "JWT verification misconfigured",
            code="JWT_MISCONFIGURED"
        )

    return secret, issuer, audience


def verify_internal_jwt(token: str) -> JWTClaims:
    """
    Verify an internal JWT and extract claims.

    Checks the HS256 signature, issuer, audience, expiry (with clock skew
    tolerance) and the presence of the `sub` claim.

    Args:
        token: The JWT string (without 'Bearer ' prefix)

    Returns:
        JWTClaims for the caller

    Raises:
        JWTVerificationError: On any validation failure
    """
    secret, issuer, audience = get_jwt_config()

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=issuer,
            audience=audience,
            leeway=CLOCK_SKEW_LEEWAY,
            options={
                "require": ["exp", "iat", "iss", "aud"],
            }
        )
    except ExpiredSignatureError:
        logger.warning("JWT has expired")
        raise JWTVerificationError("Token has expired", code="JWT_EXPIRED")

    except InvalidIssuerError:
        logger.warning(f"JWT has invalid issuer (expected: {issuer})")
        raise JWTVerificationError("Invalid token issuer", code="JWT_INVALID_ISSUER")

    except InvalidAudienceError:
        logger.warning(f"JWT has invalid audience (expected: {audience})")
        raise JWTVerificationError("Invalid token audience", code="JWT_INVALID_AUDIENCE")

    except InvalidTokenError as e:
        logger.warning(f"JWT verification failed: {type(e).__name__}")
        raise JWTVerificationError("Invalid token", code="JWT_INVALID")

    subject = payload.get("sub")
    if not subject:
        logger.warning("JWT missing sub claim")
        raise JWTVerificationError(
            "Missing required claim: sub",
            code="JWT_MISSING_SUBJECT"
        )

    logger.debug(f"JWT verified for subject={subject}")

    return JWTClaims(
        subject=subject,
        issued_at=payload.get("iat", 0),
        expires_at=payload.get("exp", 0),
    )


def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    Returns:
        The token string, or None if header is missing/malformed
    """
    if not authorization_header:
        return None

    if not authorization_header.startswith("Bearer "):
        return None

    token = authorization_header[7:]

    if not token or not token.strip():
        return None

    return token.strip()


def is_jwt_auth_enabled() -> bool:
    """True when INTERNAL_JWT_SECRET is set (even if invalid, so misconfiguration fails closed)."""
    return bool(os.getenv("INTERNAL_JWT_SECRET"))


async def require_internal_jwt(
    authorization: Optional[str] = Header(default=None),
) -> Optional[JWTClaims]:
    """
    FastAPI dependency guarding administrative endpoints.

    Returns:
        The verified claims, or None when authentication is disabled

    Raises:
        AuthenticationError: If the bearer token is missing or invalid
    """
    if not is_jwt_auth_enabled():
        return None

    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthenticationError(
            "Missing or malformed Authorization header",
            details={"reason": "JWT_MISSING"},
        )

    try:
        return verify_internal_jwt(token)
    except JWTVerificationError as e:
        raise AuthenticationError(e.message, details={"reason": e.code}) from e
