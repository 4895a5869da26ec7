from typing import Optional

DEFAULT_MEDIA_TYPE = "application/octet-stream"

VIDEO_MEDIA_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "3gp": "video/3gpp",
    "flv": "video/x-flv",
    "mov": "video/quicktime",
}

AUDIO_MEDIA_TYPES = {
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "webm": "audio/webm",
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}


def media_type_for(ext: Optional[str], has_video: bool = True) -> str:
    """Content-Type for a container, falling back to a generic binary type"""
    ext = (ext or "").lower().lstrip(".")
    if has_video:
        return VIDEO_MEDIA_TYPES.get(ext) or AUDIO_MEDIA_TYPES.get(ext, DEFAULT_MEDIA_TYPE)
    return AUDIO_MEDIA_TYPES.get(ext, DEFAULT_MEDIA_TYPE)
