from typing import List, Optional, Tuple

from tubeproxy.config.settings import config
from tubeproxy.models.internal import DownloadRequest, FormatSelector
from tubeproxy.models.response import ExtractedFormat, RecommendedFormats

PROGRESSIVE_CODEC_PREFIXES = ("avc1", "h264", "mp4v")
MP4_AUDIO_CONTAINERS = ("m4a", "mp4")


def _is_progressive(f: ExtractedFormat) -> bool:
    return f.has_video and f.has_audio


def _is_audio_only(f: ExtractedFormat) -> bool:
    return f.has_audio and not f.has_video


def _video_rank(f: ExtractedFormat) -> Tuple:
    return (f.height or 0, f.fps or 0, f.bitrate or 0)


def _audio_bitrate(f: ExtractedFormat) -> float:
    return f.audio_bitrate or f.bitrate or 0


def _best(candidates: List[ExtractedFormat], rank) -> Optional[ExtractedFormat]:
    """Highest rank wins; the smallest format id breaks exact ties"""
    if not candidates:
        return None
    return min(candidates, key=lambda f: (tuple(-x for x in rank(f)), f.format_id))


class FormatDecision:
    """Make format decisions"""

    @staticmethod
    def select_video(formats: List[ExtractedFormat]) -> Optional[ExtractedFormat]:
        """
        mp4 with a progressive codec by (height, fps, bitrate), then any mp4 with
        both tracks, then the first format that carries both tracks.
        """
        progressive = [f for f in formats if _is_progressive(f)]
        mp4 = [f for f in progressive if (f.container or "").lower() == "mp4"]

        preferred = [
            f for f in mp4
            if (f.video_codec or "").lower().startswith(PROGRESSIVE_CODEC_PREFIXES)
        ]
        if preferred:
            return _best(preferred, _video_rank)
        if mp4:
            return _best(mp4, _video_rank)
        return progressive[0] if progressive else None

    @staticmethod
    def select_audio(formats: List[ExtractedFormat]) -> Optional[ExtractedFormat]:
        """mp4-family audio with a reported bitrate, else the highest bitrate audio-only format"""
        audio_only = [f for f in formats if _is_audio_only(f)]

        preferred = [
            f for f in audio_only
            if (f.container or "").lower() in MP4_AUDIO_CONTAINERS and _audio_bitrate(f) > 0
        ]
        if preferred:
            return _best(preferred, lambda f: (_audio_bitrate(f),))
        return _best(audio_only, lambda f: (_audio_bitrate(f),))

    @staticmethod
    def select(formats: List[ExtractedFormat], selector: FormatSelector) -> Optional[ExtractedFormat]:
        if selector == FormatSelector.AUDIO:
            return FormatDecision.select_audio(formats)
        return FormatDecision.select_video(formats)

    @staticmethod
    def recommend(formats: List[ExtractedFormat]) -> RecommendedFormats:
        video = FormatDecision.select_video(formats)
        audio = FormatDecision.select_audio(formats)
        return RecommendedFormats(
            video=video.format_id if video else None,
            audio=audio.format_id if audio else None,
        )

    @staticmethod
    def ytdlp_selector(request: DownloadRequest) -> str:
        """yt-dlp -f expression for the process backend"""
        if request.itag is not None:
            return str(request.itag)

        if request.selector == FormatSelector.AUDIO:
            # No trailing "/best": a video-bearing file must never stand in for audio
            return "bestaudio[ext=m4a]/bestaudio"

        height = config.download.max_height
        return f"best[height<={height}][ext=mp4]/best[ext=mp4]/best"

    @staticmethod
    def max_filesize(request: DownloadRequest) -> Optional[str]:
        if request.itag is not None:
            return None
        if request.selector == FormatSelector.AUDIO:
            return config.download.max_filesize_audio
        return config.download.max_filesize_video
