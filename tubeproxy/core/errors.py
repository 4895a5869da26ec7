from typing import Any, Optional


class ProxyError(Exception):
    """
    Base class for failures surfaced to the client.
    The message is an i18n key; `reason` carries internal detail for logs only.
    """
    status_code = 500
    message_key = "error.extractor_unavailable"

    def __init__(self, message_key: Optional[str] = None, reason: Optional[str] = None, **params: Any):
        if message_key:
            self.message_key = message_key
        self.reason = reason
        self.params = params
        super().__init__(reason or self.message_key)


class InvalidInput(ProxyError):
    status_code = 400
    message_key = "error.invalid_input"


class ContentUnavailable(ProxyError):
    status_code = 404
    message_key = "error.content_unavailable"


class UpstreamBlocked(ProxyError):
    status_code = 403
    message_key = "error.upstream_blocked"


class FormatNotFound(ProxyError):
    status_code = 404
    message_key = "error.format_not_found"


class ExtractorUnavailable(ProxyError):
    status_code = 500
    message_key = "error.extractor_unavailable"


class QuotaExceeded(ProxyError):
    status_code = 503
    message_key = "error.quota_exceeded"


class ClientDisconnected(ProxyError):
    status_code = 499
    message_key = "error.client_disconnected"


# Checked in order: "Private video. Sign in if you've been granted access"
# must land on ContentUnavailable, not UpstreamBlocked.
ERROR_PATTERNS = (
    (FormatNotFound, (
        "requested format is not available",
        "requested format not available",
        "no video formats found",
    )),
    (ContentUnavailable, (
        "private video",
        "video unavailable",
        "this video is unavailable",
        "this video has been removed",
        "has been terminated",
        "not available in your country",
        "blocked it in your country",
        "members-only",
        "this live event will begin",
    )),
    (QuotaExceeded, (
        "http error 429",
        "too many requests",
        "quotaexceeded",
    )),
    (UpstreamBlocked, (
        "sign in to confirm",
        "confirm you're not a bot",
        "confirm you’re not a bot",
        "http error 403",
        "403: forbidden",
        "login required",
    )),
)


def classify_extractor_error(message: str) -> ProxyError:
    """Map extractor error output onto the client-facing error taxonomy."""
    lowered = (message or "").lower()
    for error_cls, patterns in ERROR_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return error_cls(reason=message[:500])
    return ExtractorUnavailable(reason=(message or "extractor failed")[:500])


def error_for_upstream_status(status_code: int) -> ProxyError:
    """Map an upstream media-host HTTP status onto the error taxonomy."""
    reason = f"upstream returned HTTP {status_code}"
    if status_code in (401, 403):
        return UpstreamBlocked(reason=reason)
    if status_code in (404, 410):
        return ContentUnavailable(reason=reason)
    if status_code == 429:
        return QuotaExceeded(reason=reason)
    return ExtractorUnavailable(reason=reason)


# yt-dlp exits 0 when a filter rejects the video, so these only show up in its output
SKIP_PATTERNS = (
    ("does not pass filter", ContentUnavailable, "error.live_not_supported"),
    ("larger than max-filesize", FormatNotFound, "error.file_too_large"),
)


def classify_skipped_download(output: str) -> ProxyError:
    """Explain a successful yt-dlp run that produced no file."""
    lowered = (output or "").lower()
    for pattern, error_cls, message_key in SKIP_PATTERNS:
        if pattern in lowered:
            return error_cls(message_key, reason=output.strip()[-500:])
    return ExtractorUnavailable(reason="output file not found after download")
