import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

VIDEO_ID_RE = re.compile(r"^[0-9A-Za-z_-]{11}$")

YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}

# Path prefixes that carry the id as the next path segment
PATH_ID_PREFIXES = ("embed", "shorts", "live", "v")


def is_video_id(value: str) -> bool:
    return bool(value) and bool(VIDEO_ID_RE.match(value))


def extract_video_id(url: str) -> Optional[str]:
    """
    Extract the 11-character video id from a recognized YouTube URL.
    Returns None for anything else (other hosts, playlists without v=, etc.).
    """
    if not url:
        return None

    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"

    try:
        parsed = urlparse(candidate)
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https"):
        return None

    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    if host in SHORT_HOSTS:
        video_id = segments[0] if segments else None
    elif host in YOUTUBE_HOSTS:
        if segments[:1] == ["watch"]:
            video_id = parse_qs(parsed.query).get("v", [None])[0]
        elif len(segments) >= 2 and segments[0] in PATH_ID_PREFIXES:
            video_id = segments[1]
        else:
            video_id = None
    else:
        video_id = None

    return video_id if video_id and is_video_id(video_id) else None


def canonical_url(video_id: str) -> str:
    """Normalized watch URL handed to the extractor"""
    return f"https://www.youtube.com/watch?v={video_id}"
