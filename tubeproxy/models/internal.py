import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class FormatSelector(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


class DownloadRequest(BaseModel):
    """Validated download request (separated from HTTP concerns)"""
    model_config = ConfigDict(frozen=True)

    video_id: str
    source_url: str
    selector: Optional[FormatSelector] = None
    itag: Optional[int] = None
    filename: Optional[str] = None

    @property
    def selection(self) -> str:
        """Human readable selection for logs and fallback names"""
        if self.itag is not None:
            return f"itag {self.itag}"
        return self.selector.value if self.selector else "video"


@dataclass
class StreamHandle:
    """
    An open byte source owned by exactly one request.
    aclose() releases everything (iterator, upstream, temp file) and is idempotent.
    """
    chunks: AsyncIterator[bytes]
    media_type: str
    filename: str
    content_length: Optional[int] = None
    temp_path: Optional[str] = None
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)
    closed: bool = False

    def add_closer(self, closer: Callable[[], Awaitable[None]]) -> None:
        self.closers.append(closer)

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True

        aclose = getattr(self.chunks, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except RuntimeError as e:
                logger.warning(f"Failed to close stream iterator: {e}")

        for closer in self.closers:
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Stream release callback failed: {e}")

        if self.temp_path:
            remove_temp_file(self.temp_path)


def remove_temp_file(path: str) -> None:
    """Delete a temp file; failures are logged, never raised"""
    try:
        os.remove(path)
        logger.info(f"Cleaned up {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Failed to remove temp file {path}: {e}")
