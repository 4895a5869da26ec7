from .errors import (
    ContentUnavailable,
    ExtractorUnavailable,
    FormatNotFound,
    InvalidInput,
    ProxyError,
    QuotaExceeded,
    UpstreamBlocked,
)

__all__ = [
    "ContentUnavailable",
    "ExtractorUnavailable",
    "FormatNotFound",
    "InvalidInput",
    "ProxyError",
    "QuotaExceeded",
    "UpstreamBlocked",
]
