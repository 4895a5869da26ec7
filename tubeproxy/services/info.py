from tubeproxy.models.response import VideoMetadata
from tubeproxy.services.extractor import ExtractorBackend
from tubeproxy.services.format import FormatDecision


class VideoInfoService:
    """Video info fetching service"""

    @staticmethod
    async def fetch(url: str, extractor: ExtractorBackend) -> VideoMetadata:
        """
        Fetch typed metadata and attach the auto-selected formats.
        Video recommendations come from the progressive bucket only, audio from audio-only.
        """
        metadata = await extractor.fetch_metadata(url)
        formats = metadata.formats.video + metadata.formats.audio_only
        metadata.recommended = FormatDecision.recommend(formats)
        return metadata
