from .filename import content_disposition, sanitize_filename
from .youtube import canonical_url, extract_video_id

__all__ = ["canonical_url", "content_disposition", "extract_video_id", "sanitize_filename"]
