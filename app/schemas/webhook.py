"""Webhook intake API schemas."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the sender. reason is set when processed is False."""

    received: bool
    processed: bool
    reason: str | None = None
