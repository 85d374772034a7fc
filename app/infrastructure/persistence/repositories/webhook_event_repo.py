"""Webhook event log repository (idempotency by source and event id).

Uses its own sessions so a failed mark is committed even when the
request's unit of work rolls back.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.webhook import WebhookEventRecord
from app.domain.enums import WebhookSource, WebhookStatus
from app.infrastructure.persistence.models.webhook_event import WebhookEvent
from app.shared.utils.datetime import ensure_utc, utc_now
from app.shared.utils.generators import generate_cuid


def _event_to_record(e: WebhookEvent) -> WebhookEventRecord:
    """Map ORM WebhookEvent to application WebhookEventRecord."""
    return WebhookEventRecord(
        id=e.id,
        event_id=e.event_id,
        event_type=e.event_type,
        source=WebhookSource(e.source),
        payload=e.payload,
        status=WebhookStatus(e.status),
        attempt_count=e.attempt_count,
        error_message=e.error_message,
        processed_at=ensure_utc(e.processed_at),
    )


class WebhookEventRepository:
    """IWebhookEventRepository over PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_by_event_id(self, source: WebhookSource, event_id: str) -> WebhookEventRecord | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(WebhookEvent).where(
                    WebhookEvent.source == source.value, WebhookEvent.event_id == event_id
                )
            )
            event = result.scalar_one_or_none()
            return _event_to_record(event) if event else None

    async def try_record_processing(
        self,
        event_id: str,
        event_type: str,
        source: WebhookSource,
        payload: dict[str, Any],
    ) -> WebhookEventRecord | None:
        """Claim the event. Returns None for a redelivery (attempt_count is bumped)."""
        stmt = (
            pg_insert(WebhookEvent)
            .values(
                id=generate_cuid(),
                event_id=event_id,
                event_type=event_type,
                source=source.value,
                payload=payload,
                status=WebhookStatus.PROCESSING.value,
                attempt_count=1,
            )
            .on_conflict_do_nothing(index_elements=["source", "event_id"])
            .returning(WebhookEvent.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            new_id = result.scalar_one_or_none()
            if new_id is None:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.source == source.value, WebhookEvent.event_id == event_id)
                    .values(attempt_count=WebhookEvent.attempt_count + 1)
                )
                await session.commit()
                return None
            await session.commit()
        return WebhookEventRecord(
            id=new_id,
            event_id=event_id,
            event_type=event_type,
            source=source,
            payload=payload,
            status=WebhookStatus.PROCESSING,
            attempt_count=1,
        )

    async def mark(
        self,
        source: WebhookSource,
        event_id: str,
        status: WebhookStatus,
        error_message: str | None = None,
    ) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(WebhookEvent)
                .where(WebhookEvent.source == source.value, WebhookEvent.event_id == event_id)
                .values(status=status.value, error_message=error_message, processed_at=utc_now())
            )
            await session.commit()
