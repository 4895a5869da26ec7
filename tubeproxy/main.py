import asyncio
import functools
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tubeproxy.api import health, info, download
from tubeproxy.config.settings import config
from tubeproxy.core.errors import ProxyError
from tubeproxy.core.logging import RequestIdMiddleware, log_error, log_warning, setup_logging
from tubeproxy.core.state import state
from tubeproxy.i18n import i18n
from tubeproxy.infra.redis import init_redis, close_redis
from tubeproxy.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder
from tubeproxy.utils.locale import get_locale

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=config.api.title,
    description=config.api.description,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)
app.add_middleware(RequestIdMiddleware)

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(info.router, tags=["Info"])
app.include_router(download.router, tags=["Download"])


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError):
    """Every failure leaves as {"error": ...}; internal reasons only reach the log"""
    locale = get_locale(request.headers.get("accept-language"))
    message = i18n.get(exc.message_key, locale=locale, **exc.params)

    log = log_error if exc.status_code >= 500 else log_warning
    log(request, f"{type(exc).__name__} ({exc.status_code}): {exc.reason or exc.message_key}")

    return JSONResponse(status_code=exc.status_code, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)
    return JSONResponse(status_code=400, content={"error": _("error.invalid_input")})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log_error(request, f"Unhandled error: {type(exc).__name__}: {str(exc)}")
    locale = get_locale(request.headers.get("accept-language"))
    return JSONResponse(status_code=500, content={"error": i18n.get("error.extractor_unavailable", locale=locale)})


async def detect_ytdlp_version() -> str:
    try:
        result = await SubprocessExecutor.run(YTDLPCommandBuilder.build_version_command(), timeout=10.0)
    except (OSError, asyncio.TimeoutError) as e:
        logger.warning(f"yt-dlp version check failed: {e}")
        return "unavailable"
    if result.returncode != 0:
        return "unavailable"
    return result.stdout.decode(errors="ignore").strip() or "unknown"


@app.on_event("startup")
async def startup_event():
    await init_redis()
    state.ytdlp_version = await detect_ytdlp_version()
    logger.info(f"yt-dlp {state.ytdlp_version}, backend={config.ytdlp.backend}")


@app.on_event("shutdown")
async def shutdown_event():
    await close_redis()
