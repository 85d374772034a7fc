"""Security: session tokens and webhook signatures."""

from app.infrastructure.security.jwt import claims_from_payload, create_access_token, verify_token
from app.infrastructure.security.webhook_signature import (
    HmacSignatureVerifier,
    SvixSignatureVerifier,
    build_webhook_verifiers,
    hmac_sha256_hex,
)

__all__ = [
    "HmacSignatureVerifier",
    "SvixSignatureVerifier",
    "build_webhook_verifiers",
    "claims_from_payload",
    "create_access_token",
    "hmac_sha256_hex",
    "verify_token",
]
