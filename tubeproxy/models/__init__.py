from .internal import DownloadRequest, FormatSelector, StreamHandle
from .request import parse_download_request, parse_info_url
from .response import ErrorResponse, ExtractedFormat, VideoMetadata

__all__ = [
    "DownloadRequest",
    "ErrorResponse",
    "ExtractedFormat",
    "FormatSelector",
    "StreamHandle",
    "VideoMetadata",
    "parse_download_request",
    "parse_info_url",
]
