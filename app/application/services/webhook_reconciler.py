"""Webhook reconciliation: verify, deduplicate, record, apply.

States of one delivery:
    received -> signature verified -> idempotency checked -> processing
             -> success | skipped | failed

A delivery whose signature fails is rejected before anything is stored.
A delivery whose event id was already recorded is acknowledged without
touching the cache. Records are never retried automatically; the sender's
redelivery of a failed event is reported as a duplicate.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from app.application.dtos.webhook import WebhookOutcome
from app.application.interfaces.repositories import IUnitOfWork, IWebhookEventRepository
from app.application.interfaces.services import IWebhookVerifier
from app.application.services.webhook_events import event_type_of, parse_event
from app.application.services.webhook_handlers import WebhookHandlers
from app.domain.enums import WebhookSource, WebhookStatus
from app.domain.exceptions import (
    MalformedWebhookException,
    WebhookNotConfiguredException,
    WebhookProcessingException,
)

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "Duplicate event"


class WebhookReconciler:
    """Applies verified upstream events to local state exactly once per event id."""

    def __init__(
        self,
        verifiers: Mapping[WebhookSource, IWebhookVerifier | None],
        events: IWebhookEventRepository,
        handlers: WebhookHandlers,
        uow: IUnitOfWork,
    ) -> None:
        self.verifiers = verifiers
        self.events = events
        self.handlers = handlers
        self.uow = uow

    async def receive(
        self,
        source: WebhookSource,
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> WebhookOutcome:
        """Process one webhook delivery.

        Args:
            source: Which upstream sent the webhook.
            raw_body: Exact request body bytes (signatures cover these).
            headers: Request headers (case-insensitive mapping).

        Returns:
            WebhookOutcome for the response body.

        Raises:
            WebhookNotConfiguredException: No secret configured for source.
            InvalidWebhookSignatureException: Signature missing or wrong.
            MalformedWebhookException: Body is not a recognizable event.
            WebhookProcessingException: Handler failed; record marked failed.
        """
        verifier = self.verifiers.get(source)
        if verifier is None:
            raise WebhookNotConfiguredException(source.value)
        verifier.verify(raw_body, headers)

        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise MalformedWebhookException(source.value, "body is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedWebhookException(source.value, "body is not a JSON object")

        event_type = event_type_of(source, payload)
        event_id = verifier.event_id(raw_body, headers, payload)

        record = await self.events.try_record_processing(event_id, event_type, source, payload)
        if record is None:
            logger.info("Duplicate %s webhook %s (%s) acknowledged", source.value, event_id, event_type)
            return WebhookOutcome(
                received=True, processed=False, reason=DUPLICATE_REASON, event_id=event_id
            )

        logger.info("Processing %s webhook %s (%s)", source.value, event_id, event_type)
        try:
            event = parse_event(source, payload)
            outcome = await self.handlers.dispatch(event)
            await self.uow.commit()
        except MalformedWebhookException as exc:
            await self.uow.rollback()
            await self.events.mark(source, event_id, WebhookStatus.FAILED, exc.message)
            raise
        except Exception as exc:
            await self.uow.rollback()
            logger.exception("Webhook %s (%s) failed", event_id, event_type)
            await self.events.mark(source, event_id, WebhookStatus.FAILED, str(exc) or type(exc).__name__)
            raise WebhookProcessingException(event_id, type(exc).__name__) from exc

        status = WebhookStatus.SUCCESS if outcome.processed else WebhookStatus.SKIPPED
        await self.events.mark(source, event_id, status, outcome.reason)
        return WebhookOutcome(
            received=outcome.received,
            processed=outcome.processed,
            reason=outcome.reason,
            event_id=event_id,
        )
