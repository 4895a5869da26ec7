import functools
from typing import Optional

from fastapi import APIRouter, Request, Depends, Query

from tubeproxy.models.request import parse_download_request
from tubeproxy.models.response import ErrorResponse
from tubeproxy.services.backends import get_extractor
from tubeproxy.services.extractor import ExtractorBackend
from tubeproxy.services.relay import RelayResponse
from tubeproxy.core.logging import log_debug, log_info
from tubeproxy.infra.rate_limit import rate_limiter
from tubeproxy.infra.concurrency import concurrency_limiter, release_download_slot
from tubeproxy.utils.locale import get_locale, safe_url_for_log
from tubeproxy.i18n import i18n

router = APIRouter()


@router.get(
    "/download",
    responses={code: {"model": ErrorResponse} for code in (400, 403, 404, 500, 503)},
    dependencies=[Depends(rate_limiter), Depends(concurrency_limiter)]
)
async def download_video(
    request: Request,
    url: Optional[str] = Query(None, description="YouTube video URL"),
    format: Optional[str] = Query(None, description='"video" or "audio"'),
    video_id: Optional[str] = Query(None, alias="videoId", description="11-character video id"),
    itag: Optional[str] = Query(None, description="Explicit format identifier"),
    filename: Optional[str] = Query(None, description="Download filename"),
    extractor: ExtractorBackend = Depends(get_extractor)
):
    """Download a video or its audio, streamed through this server"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    try:
        download_request = parse_download_request(
            url=url,
            video_id=video_id,
            format=format,
            itag=itag,
            filename=filename
        )

        log_info(request, _(
            "log.starting_download",
            url=safe_url_for_log(download_request.source_url),
            selection=download_request.selection
        ))

        handle = await extractor.open_stream(download_request, request.is_disconnected)
    except BaseException:
        await release_download_slot(request)
        raise

    log_debug(request, f"Stream ready: {handle.filename} ({handle.media_type}, {handle.content_length} bytes)")
    handle.add_closer(functools.partial(release_download_slot, request))
    return RelayResponse(handle, request)
