"""DTOs for webhook intake (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.enums import WebhookSource, WebhookStatus


@dataclass(frozen=True)
class WebhookEventRecord:
    """Persisted record of one inbound webhook delivery."""

    id: str
    event_id: str
    event_type: str
    source: WebhookSource
    payload: dict[str, Any]
    status: WebhookStatus
    attempt_count: int
    error_message: str | None = None
    processed_at: datetime | None = None


@dataclass(frozen=True)
class WebhookOutcome:
    """Response body of a webhook endpoint."""

    received: bool
    processed: bool
    reason: str | None = None
    event_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"received": self.received, "processed": self.processed}
        if self.reason:
            body["reason"] = self.reason
        return body
