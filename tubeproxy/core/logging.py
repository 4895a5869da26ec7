import logging
import uuid
from typing import Any

from fastapi import Request
from rich.logging import RichHandler
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tubeproxy.config.settings import config

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextFilter(logging.Filter):
    """Ensure every record has a request_id so the format string never breaks"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def setup_logging() -> None:
    """Configure root logging from config (rich console by default)"""
    if config.logging.enable_rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(config.logging.format))
    handler.addFilter(RequestContextFilter())
    logging.basicConfig(level=config.logging.level, handlers=[handler], force=True)


class RequestIdMiddleware:
    """
    Assign a request id to every HTTP request.
    Pure ASGI so streaming responses and disconnect detection are untouched.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex[:12]
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.append(REQUEST_ID_HEADER, request_id)
            await send(message)

        await self.app(scope, receive, send_with_request_id)


def log_with_context(
    request: Request,
    level: int,
    message: str,
    **kwargs: Any
) -> None:
    """
    Log with request context.
    Automatically includes request_id for tracing.
    """
    extra = {
        "request_id": getattr(request.state, "request_id", "unknown"),
        **kwargs
    }
    logger.log(level, message, extra=extra)


def log_info(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.INFO, message, **kwargs)


def log_error(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.ERROR, message, **kwargs)


def log_warning(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.WARNING, message, **kwargs)


def log_debug(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.DEBUG, message, **kwargs)
