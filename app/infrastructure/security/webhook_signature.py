"""Webhook signature verification.

Payments and CRM sign the raw body:
    X-Webhook-Signature: sha256=<hex(hmac_sha256(secret, body))>
The identity provider uses the Svix scheme:
    svix-signature: v1,<base64(hmac_sha256(key, "{svix-id}.{svix-timestamp}.{body}"))>
with the key being the base64 part of a "whsec_..." secret.

All comparisons are constant-time.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from app.core.config import Settings
from app.core.constants import (
    SVIX_ID_HEADER,
    SVIX_SIGNATURE_HEADER,
    SVIX_TIMESTAMP_HEADER,
    WEBHOOK_ID_HEADER,
    WEBHOOK_SIGNATURE_HEADER,
)
from app.domain.enums import WebhookSource
from app.domain.exceptions import InvalidWebhookSignatureException
from app.shared.utils.datetime import utc_now


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def hmac_sha256_hex(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class HmacSignatureVerifier:
    """Verifies 'sha256=<hex>' signatures (payments, CRM)."""

    def __init__(self, source: WebhookSource, secret: str) -> None:
        self.source = source
        self._secret = secret

    def verify(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        signature = _header(headers, WEBHOOK_SIGNATURE_HEADER)
        if not signature or not signature.startswith("sha256="):
            raise InvalidWebhookSignatureException(self.source.value, "Missing webhook signature")
        expected = hmac_sha256_hex(self._secret, raw_body)
        if not hmac.compare_digest(signature[7:].strip(), expected):
            raise InvalidWebhookSignatureException(self.source.value, "Invalid webhook signature")

    def event_id(
        self, raw_body: bytes, headers: Mapping[str, str], payload: Mapping[str, Any]
    ) -> str:
        """Delivery id header, else payload 'id', else sha256 of the body."""
        header_id = _header(headers, WEBHOOK_ID_HEADER)
        if header_id:
            return header_id
        payload_id = payload.get("id")
        if payload_id:
            return str(payload_id)
        return "sha256:" + hashlib.sha256(raw_body).hexdigest()


class SvixSignatureVerifier:
    """Verifies identity-provider webhooks signed with the Svix scheme.

    Args:
        secret: 'whsec_<base64 key>' (the prefix is optional).
        tolerance_seconds: Maximum clock difference for svix-timestamp.
        clock: Returns the current UTC time (injectable for tests).
    """

    source = WebhookSource.IDENTITY

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        encoded = secret.removeprefix("whsec_")
        try:
            self._key = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Identity webhook secret is not valid base64") from exc
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def sign(self, msg_id: str, timestamp: str, raw_body: bytes) -> str:
        """Return the 'v1,<base64>' signature for a message."""
        signed = f"{msg_id}.{timestamp}.".encode() + raw_body
        digest = hmac.new(self._key, signed, hashlib.sha256).digest()
        return "v1," + base64.b64encode(digest).decode()

    def verify(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        msg_id = _header(headers, SVIX_ID_HEADER)
        timestamp = _header(headers, SVIX_TIMESTAMP_HEADER)
        signatures = _header(headers, SVIX_SIGNATURE_HEADER)
        if not msg_id or not timestamp or not signatures:
            raise InvalidWebhookSignatureException(self.source.value, "Missing svix headers")
        try:
            sent_at = int(timestamp)
        except ValueError:
            raise InvalidWebhookSignatureException(self.source.value, "Invalid svix timestamp") from None
        now = int(self._clock().timestamp())
        if abs(now - sent_at) > self.tolerance_seconds:
            raise InvalidWebhookSignatureException(self.source.value, "Webhook timestamp outside tolerance")

        expected = self.sign(msg_id, timestamp, raw_body)
        # Header may carry several space-separated signatures during key rotation.
        for candidate in signatures.split():
            if hmac.compare_digest(candidate, expected):
                return
        raise InvalidWebhookSignatureException(self.source.value, "Invalid webhook signature")

    def event_id(
        self, raw_body: bytes, headers: Mapping[str, str], payload: Mapping[str, Any]
    ) -> str:
        return _header(headers, SVIX_ID_HEADER) or ""


def build_webhook_verifiers(
    settings: Settings,
) -> dict[WebhookSource, HmacSignatureVerifier | SvixSignatureVerifier | None]:
    """Verifier per source; None where no secret is configured (deliveries get 503)."""
    payments = settings.webhook_secret_payments
    crm = settings.webhook_secret_crm
    identity = settings.identity_webhook_secret
    return {
        WebhookSource.PAYMENTS: (
            HmacSignatureVerifier(WebhookSource.PAYMENTS, payments.get_secret_value())
            if payments and payments.get_secret_value()
            else None
        ),
        WebhookSource.CRM: (
            HmacSignatureVerifier(WebhookSource.CRM, crm.get_secret_value())
            if crm and crm.get_secret_value()
            else None
        ),
        WebhookSource.IDENTITY: (
            SvixSignatureVerifier(
                identity.get_secret_value(),
                tolerance_seconds=settings.webhook_timestamp_tolerance_seconds,
            )
            if identity and identity.get_secret_value()
            else None
        ),
    }
