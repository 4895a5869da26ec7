"""
Extractor adapter: the only boundary to yt-dlp.

Two interchangeable backends implement the same interface:
- ProcessExtractor runs the yt-dlp CLI and relays the single temp file it writes.
- DirectStreamExtractor calls the yt_dlp library and relays the upstream HTTP stream.
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from tubeproxy.config.settings import config
from tubeproxy.core.errors import ContentUnavailable, ExtractorUnavailable
from tubeproxy.models.internal import DownloadRequest, StreamHandle
from tubeproxy.models.response import VideoMetadata

DisconnectProbe = Callable[[], Awaitable[bool]]


class ExtractorBackend(ABC):
    """Per-request adapter around one extraction strategy"""

    name = "base"

    @abstractmethod
    async def fetch_metadata(self, url: str) -> VideoMetadata:
        """Resolve url into typed metadata with partitioned formats"""

    @abstractmethod
    async def open_stream(
        self,
        request: DownloadRequest,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> StreamHandle:
        """
        Return a readable StreamHandle for the requested selection.
        Must not return before the stream is confirmed readable, and must
        release anything it acquired when it raises.
        """


def parse_info(info: Any) -> VideoMetadata:
    """Validate extractor info at the adapter boundary"""
    if not isinstance(info, dict):
        raise ExtractorUnavailable(reason=f"unexpected extractor output type {type(info).__name__}")
    return VideoMetadata.from_ytdlp(info)


def find_raw_format(info: Dict[str, Any], format_id: str) -> Optional[Dict[str, Any]]:
    for raw in info.get("formats") or []:
        if str(raw.get("format_id")) == format_id:
            return raw
    return None


def ensure_not_live(info: Dict[str, Any]) -> None:
    if info.get("is_live") and not config.ytdlp.enable_live_streams:
        raise ContentUnavailable("error.live_not_supported", reason="live streams are disabled")
