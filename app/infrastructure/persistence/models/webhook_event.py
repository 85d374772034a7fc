"""Webhook event log ORM model (idempotency and audit of inbound webhooks)."""

from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.enums import WebhookSource, WebhookStatus
from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import CuidMixin, JsonType, TimestampMixin


class WebhookEvent(CuidMixin, TimestampMixin, Base):
    """One inbound webhook delivery. Table: webhook_event. Unique (source, event_id)."""

    __tablename__ = "webhook_event"

    event_id: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    source: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=WebhookStatus.PROCESSING.value, index=True
    )
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "event_id", name="uq_webhook_event_source_event_id"),
        CheckConstraint(
            "source IN ({})".format(", ".join(f"'{s.value}'" for s in WebhookSource)),
            name="webhook_event_source_check",
        ),
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s.value}'" for s in WebhookStatus)),
            name="webhook_event_status_check",
        ),
    )
