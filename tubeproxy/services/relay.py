import logging
from typing import AsyncIterator, Dict, Optional

import anyio
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from tubeproxy.core.logging import log_error, log_info
from tubeproxy.models.internal import StreamHandle
from tubeproxy.utils.filename import content_disposition

logger = logging.getLogger(__name__)


def relay_headers(handle: StreamHandle) -> Dict[str, str]:
    headers = {
        "Content-Disposition": content_disposition(handle.filename),
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
        "Expires": "0",
        "X-Content-Type-Options": "nosniff",
    }
    if handle.content_length is not None:
        headers["Content-Length"] = str(handle.content_length)
    return headers


async def relay(handle: StreamHandle, request: Optional[Request] = None) -> AsyncIterator[bytes]:
    """Forward chunks in arrival order; errors are logged and re-raised to abort the body"""
    sent = 0
    try:
        async for chunk in handle.chunks:
            sent += len(chunk)
            yield chunk
    except Exception as e:
        if request is not None:
            log_error(request, f"Streaming error after {sent} bytes: {str(e)}")
        else:
            logger.error(f"Streaming error after {sent} bytes: {str(e)}")
        raise
    if request is not None:
        log_info(request, f"Relayed {sent} bytes of {handle.filename}")


class RelayResponse(StreamingResponse):
    """
    Streaming response that owns a StreamHandle.
    The handle is released when the response ends for any reason: normal
    completion, a stream error, or the client going away.
    """

    def __init__(self, handle: StreamHandle, request: Optional[Request] = None):
        self.handle = handle
        super().__init__(
            relay(handle, request),
            media_type=handle.media_type,
            headers=relay_headers(handle),
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self.handle.aclose()
