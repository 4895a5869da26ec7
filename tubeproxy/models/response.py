from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tubeproxy.utils.media import media_type_for


def has_track(codec: Optional[str]) -> bool:
    """yt-dlp reports an absent track with the codec "none" """
    return bool(codec) and codec != "none"


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedFormat(ApiModel):
    """One encoded rendition reported by the extractor"""
    format_id: str = Field(alias="id")
    container: Optional[str] = None
    has_video: bool = False
    has_audio: bool = False
    approximate_size: Optional[int] = None
    quality_label: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None
    fps: Optional[float] = None
    bitrate: Optional[float] = None
    audio_bitrate: Optional[float] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    mime_type: str = "application/octet-stream"

    @classmethod
    def from_ytdlp(cls, raw: Dict[str, Any]) -> "ExtractedFormat":
        vcodec = raw.get("vcodec")
        acodec = raw.get("acodec")
        has_video = has_track(vcodec)
        has_audio = has_track(acodec)
        container = raw.get("ext")
        return cls(
            format_id=str(raw.get("format_id")),
            container=container,
            has_video=has_video,
            has_audio=has_audio,
            approximate_size=_as_int(raw.get("filesize") or raw.get("filesize_approx")),
            quality_label=raw.get("format_note") or raw.get("resolution"),
            height=_as_int(raw.get("height")),
            width=_as_int(raw.get("width")),
            fps=_as_float(raw.get("fps")),
            bitrate=_as_float(raw.get("tbr")),
            audio_bitrate=_as_float(raw.get("abr")),
            video_codec=vcodec if has_video else None,
            audio_codec=acodec if has_audio else None,
            mime_type=media_type_for(container, has_video),
        )


def parse_formats(info: Dict[str, Any]) -> List[ExtractedFormat]:
    return [
        ExtractedFormat.from_ytdlp(f)
        for f in info.get("formats") or []
        if isinstance(f, dict) and f.get("format_id") is not None
    ]


class FormatBuckets(ApiModel):
    video: List[ExtractedFormat] = []
    audio_only: List[ExtractedFormat] = []


class RecommendedFormats(ApiModel):
    video: Optional[str] = None
    audio: Optional[str] = None


class VideoMetadata(ApiModel):
    """Video information response"""
    id: Optional[str] = None
    title: str = "Unknown Title"
    description: str = ""
    thumbnail: str = ""
    uploader: str = "Unknown"
    duration: int = 0
    view_count: int = 0
    upload_date: str = ""
    formats: FormatBuckets = Field(default_factory=FormatBuckets)
    recommended: RecommendedFormats = Field(default_factory=RecommendedFormats)

    @classmethod
    def from_ytdlp(cls, info: Dict[str, Any]) -> "VideoMetadata":
        """Typed view of yt-dlp info JSON; video = both tracks, audioOnly = audio without video"""
        formats = parse_formats(info)
        return cls(
            id=info.get("id"),
            title=info.get("title") or "Unknown Title",
            description=info.get("description") or "",
            thumbnail=info.get("thumbnail") or "",
            uploader=info.get("uploader") or info.get("channel") or "Unknown",
            duration=_as_int(info.get("duration")) or 0,
            view_count=_as_int(info.get("view_count")) or 0,
            upload_date=info.get("upload_date") or "",
            formats=FormatBuckets(
                video=[f for f in formats if f.has_video and f.has_audio],
                audio_only=[f for f in formats if f.has_audio and not f.has_video],
            ),
        )


class ErrorResponse(BaseModel):
    error: str
