import functools
from typing import Optional

from fastapi import APIRouter, Request, Depends, Query

from tubeproxy.models.request import parse_info_url
from tubeproxy.models.response import ErrorResponse, VideoMetadata
from tubeproxy.services.backends import get_extractor
from tubeproxy.services.extractor import ExtractorBackend
from tubeproxy.services.info import VideoInfoService
from tubeproxy.core.logging import log_info
from tubeproxy.infra.rate_limit import rate_limiter
from tubeproxy.utils.locale import get_locale, safe_url_for_log
from tubeproxy.i18n import i18n

router = APIRouter()


@router.get(
    "/video-info",
    response_model=VideoMetadata,
    responses={code: {"model": ErrorResponse} for code in (400, 403, 404, 500, 503)},
    dependencies=[Depends(rate_limiter)]
)
async def get_video_info(
    request: Request,
    url: Optional[str] = Query(None, description="YouTube video URL"),
    extractor: ExtractorBackend = Depends(get_extractor)
):
    """Get video metadata with formats split into progressive and audio-only"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    source_url = parse_info_url(url)

    log_info(request, _("log.fetching_info", url=safe_url_for_log(source_url)))
    video_info = await VideoInfoService.fetch(source_url, extractor)
    log_info(request, _("log.info_retrieved", title=video_info.title))
    return video_info
