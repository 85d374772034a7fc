"""Session token verification.

Token issuance belongs to the identity provider; this module only decodes
tokens with the configured key and turns them into SessionClaims. Tests
mint tokens with create_access_token.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import JWTError, jwt

from app.application.dtos.user import SessionClaims
from app.core.config import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta = timedelta(minutes=15),
) -> str:
    """Create a signed token with the given claims (tests and local tooling).

    Args:
        data: Claims to encode (sub, email, org_id, ...).
        expires_delta: Token lifetime.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(UTC) + expires_delta
    encoded = jwt.encode(
        to_encode,
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    return cast(str, encoded)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a JWT. Returns the payload.

    Enforces presence of exp and sub.

    Raises:
        ValueError: If token is invalid, expired, or missing required claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e!s}") from e
    if "sub" not in payload:
        raise ValueError("Token missing required claim: sub")
    return payload


def claims_from_payload(payload: dict[str, Any]) -> SessionClaims:
    """Map a decoded token payload to SessionClaims."""
    return SessionClaims(
        sub=str(payload["sub"]),
        email=payload.get("email"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        avatar_url=payload.get("image_url"),
        org_id=payload.get("org_id"),
    )
