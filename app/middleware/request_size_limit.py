"""Request body size limit middleware.

Webhook bodies are read whole for signature verification, so oversized
bodies are rejected before any handler buffers them. Enforced for both
Content-Length and chunked transfer. Raw ASGI.
"""

import json
from typing import Any, Callable


class _BodyTooLarge(Exception):
    pass


def _content_length(scope: dict) -> int | None:
    for k, v in scope.get("headers", []):
        if k.lower() == b"content-length":
            try:
                return int(v)
            except ValueError:
                return None
    return None


async def _send_413(send: Callable, max_bytes: int, actual: int | None = None) -> None:
    """Send 413 Payload Too Large in the API error shape."""
    details: dict[str, Any] = {"max_bytes": max_bytes}
    if actual is not None:
        details["content_length"] = actual
    body = json.dumps(
        {
            "error": "PAYLOAD_TOO_LARGE",
            "message": f"Request body must be at most {max_bytes} bytes",
            "details": details,
        }
    ).encode()
    await send({
        "type": "http.response.start",
        "status": 413,
        "headers": [(b"content-type", b"application/json")],
    })
    await send({"type": "http.response.body", "body": body, "more_body": False})


def RequestSizeLimitMiddleware(app: Callable, max_bytes: int) -> Callable:
    """Reject requests whose body exceeds max_bytes. Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return

        length = _content_length(scope)
        if length is not None and length > max_bytes:
            await _send_413(send, max_bytes, length)
            return

        received = 0
        started = False

        async def limited_receive() -> dict:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > max_bytes:
                    raise _BodyTooLarge
            return message

        async def tracking_send(message: dict) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await app(scope, limited_receive, tracking_send)
        except _BodyTooLarge:
            if not started:
                await _send_413(send, max_bytes)

    return asgi_app
