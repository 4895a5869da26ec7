import re
from typing import Optional

from tubeproxy.core.errors import InvalidInput
from tubeproxy.models.internal import DownloadRequest, FormatSelector
from tubeproxy.utils.youtube import canonical_url, extract_video_id, is_video_id

MAX_FILENAME_LENGTH = 200
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def parse_info_url(url: Optional[str]) -> str:
    """Validate the /video-info url and return its canonical watch URL"""
    if not url or not url.strip():
        raise InvalidInput("error.url_required")

    video_id = extract_video_id(url)
    if not video_id:
        raise InvalidInput("error.invalid_url", reason=f"unrecognized url: {url[:100]}")

    return canonical_url(video_id)


def parse_download_request(
    url: Optional[str] = None,
    video_id: Optional[str] = None,
    format: Optional[str] = None,
    itag: Optional[str] = None,
    filename: Optional[str] = None,
) -> DownloadRequest:
    """
    Validate raw query parameters into a DownloadRequest.
    Runs before any process or network call; raises InvalidInput on the first problem.
    """
    url = url.strip() if url else None
    video_id = video_id.strip() if video_id else None

    if not url and not video_id:
        raise InvalidInput("error.url_required")

    if url:
        resolved_id = extract_video_id(url)
    elif is_video_id(video_id):
        resolved_id = video_id
    else:
        resolved_id = extract_video_id(video_id)

    if not resolved_id:
        raise InvalidInput("error.invalid_url", reason=f"unrecognized url/id: {(url or video_id)[:100]}")

    selector = None
    if format is not None or itag is None:
        try:
            selector = FormatSelector((format or "").strip().lower())
        except ValueError:
            raise InvalidInput("error.invalid_format", reason=f"format={format!r}")

    parsed_itag = None
    if itag is not None:
        try:
            parsed_itag = int(itag.strip())
        except ValueError:
            raise InvalidInput("error.invalid_itag", reason=f"itag={itag!r}")
        if parsed_itag <= 0:
            raise InvalidInput("error.invalid_itag", reason=f"itag={itag!r}")

    clean_filename = None
    if filename is not None:
        clean_filename = filename.strip()
        if (
            not clean_filename
            or len(clean_filename) > MAX_FILENAME_LENGTH
            or CONTROL_CHARS_RE.search(clean_filename)
        ):
            raise InvalidInput("error.invalid_filename", reason=f"filename={filename[:50]!r}")

    return DownloadRequest(
        video_id=resolved_id,
        source_url=canonical_url(resolved_id),
        selector=selector,
        itag=parsed_itag,
        filename=clean_filename,
    )
