"""Upload size boundary.

ASGI middleware that rejects request bodies above a fixed size before any
route handler sees them. Oversize requests get a bare 413 with
``Connection: close`` and no body; they never reach the build service.

The declared ``Content-Length`` is checked up front. Bodies without one
(chunked uploads) are counted as they stream in.
"""

from __future__ import annotations

import logging

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class BodyTooLargeError(Exception):
    """Raised inside the receive channel when the body exceeds the limit."""


class BodySizeLimitMiddleware:
    """Reject HTTP requests whose body is larger than ``max_body_bytes``."""

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = self._content_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            logger.warning(
                "Rejected %s %s: body of %d bytes exceeds %d",
                scope.get("method"),
                scope.get("path"),
                declared,
                self.max_body_bytes,
            )
            await self._reject(send)
            return

        received = 0
        exceeded = False
        rejected = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    exceeded = True
                    raise BodyTooLargeError
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal rejected
            if not exceeded:
                await send(message)
                return
            # Replace whatever the application answers with the rejection
            if not rejected and message["type"] == "http.response.start":
                rejected = True
                await self._reject(send)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except BodyTooLargeError:
            pass
        finally:
            if exceeded:
                logger.warning(
                    "Rejected %s %s: streamed body exceeds %d bytes",
                    scope.get("method"),
                    scope.get("path"),
                    self.max_body_bytes,
                )
                if not rejected:
                    await self._reject(send)

    @staticmethod
    def _content_length(scope: Scope) -> int | None:
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                try:
                    return int(value)
                except ValueError:
                    return None
        return None

    @staticmethod
    async def _reject(send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    (b"content-length", b"0"),
                    (b"connection", b"close"),
                ],
            }
        )
        await send({"type": "http.response.body", "body": b"", "more_body": False})


__all__ = ["BodySizeLimitMiddleware", "BodyTooLargeError"]
