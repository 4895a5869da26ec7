import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
import yt_dlp
from yt_dlp.utils import YoutubeDLError

from tubeproxy.config.settings import config
from tubeproxy.core.errors import (
    ExtractorUnavailable,
    FormatNotFound,
    classify_extractor_error,
    error_for_upstream_status,
)
from tubeproxy.models.internal import DownloadRequest, FormatSelector, StreamHandle
from tubeproxy.models.response import ExtractedFormat, VideoMetadata, parse_formats
from tubeproxy.services.extractor import (
    DisconnectProbe,
    ExtractorBackend,
    ensure_not_live,
    find_raw_format,
    parse_info,
)
from tubeproxy.services.format import FormatDecision
from tubeproxy.utils.filename import sanitize_filename, with_extension

logger = logging.getLogger(__name__)

# Manifest-based formats (HLS/DASH) are not a single relayable body
RELAYABLE_PROTOCOLS = {"http", "https"}


class DirectStreamExtractor(ExtractorBackend):
    """
    yt_dlp library backend.
    Resolves the format's media URL and relays the upstream body without touching local storage.
    """

    name = "direct"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def _ydl_options(self) -> Dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "skip_download": True,
            "socket_timeout": config.download.socket_timeout,
            "retries": config.download.retries,
        }

    def _extract_info_sync(self, url: str) -> Any:
        with yt_dlp.YoutubeDL(self._ydl_options()) as ydl:
            return ydl.extract_info(url, download=False)

    async def _extract_info(self, url: str) -> Dict[str, Any]:
        try:
            info = await asyncio.wait_for(
                asyncio.to_thread(self._extract_info_sync, url),
                timeout=config.download.info_timeout_seconds
            )
        except YoutubeDLError as e:
            raise classify_extractor_error(str(e))
        except asyncio.TimeoutError:
            raise ExtractorUnavailable(reason="metadata lookup timed out")

        if not isinstance(info, dict):
            raise ExtractorUnavailable(reason="extractor returned no info")

        ensure_not_live(info)
        return info

    async def fetch_metadata(self, url: str) -> VideoMetadata:
        return parse_info(await self._extract_info(url))

    def _choose(self, request: DownloadRequest, info: Dict[str, Any]) -> ExtractedFormat:
        formats = parse_formats(info)

        if request.itag is not None:
            for f in formats:
                if f.format_id == str(request.itag):
                    return f
            raise FormatNotFound("error.itag_not_found", itag=request.itag)

        chosen = FormatDecision.select(formats, request.selector or FormatSelector.VIDEO)
        if chosen is None:
            key = "error.audio_not_found" if request.selector == FormatSelector.AUDIO else "error.video_not_found"
            raise FormatNotFound(key)
        return chosen

    async def open_stream(
        self,
        request: DownloadRequest,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> StreamHandle:
        info = await self._extract_info(request.source_url)
        chosen = self._choose(request, info)
        raw = find_raw_format(info, chosen.format_id) or {}

        media_url = raw.get("url")
        if not media_url:
            raise ExtractorUnavailable(reason=f"format {chosen.format_id} has no media url")
        if (raw.get("protocol") or "https") not in RELAYABLE_PROTOCOLS:
            raise FormatNotFound(reason=f"format {chosen.format_id} uses protocol {raw.get('protocol')}")

        headers = {
            **(raw.get("http_headers") or info.get("http_headers") or {}),
            "Accept-Encoding": "identity",
        }
        client = httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            timeout=config.download.socket_timeout
        )

        try:
            upstream = await client.send(
                client.build_request("GET", media_url, headers=headers),
                stream=True
            )
        except httpx.HTTPError as e:
            await client.aclose()
            raise ExtractorUnavailable(reason=f"upstream request failed: {e}")
        except BaseException:
            await client.aclose()
            raise

        if upstream.status_code >= 400:
            await upstream.aclose()
            await client.aclose()
            raise error_for_upstream_status(upstream.status_code)

        content_length = upstream.headers.get("content-length")
        name = sanitize_filename(request.filename or info.get("title") or "") or f"{request.selection.replace(' ', '_')}_{request.video_id}"

        handle = StreamHandle(
            chunks=upstream.aiter_bytes(config.download.chunk_size),
            media_type=chosen.mime_type,
            filename=with_extension(name, chosen.container or "bin"),
            content_length=int(content_length) if content_length and content_length.isdigit() else None,
        )
        handle.add_closer(upstream.aclose)
        handle.add_closer(client.aclose)

        logger.info(f"Relaying format {chosen.format_id} of {request.video_id} from upstream")
        return handle
