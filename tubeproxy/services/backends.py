from typing import Optional

from tubeproxy.config.settings import config
from tubeproxy.services.direct import DirectStreamExtractor
from tubeproxy.services.extractor import ExtractorBackend
from tubeproxy.services.process import ProcessExtractor

BACKENDS = {
    ProcessExtractor.name: ProcessExtractor,
    DirectStreamExtractor.name: DirectStreamExtractor,
}


def build_extractor(backend: Optional[str] = None) -> ExtractorBackend:
    return BACKENDS[backend or config.ytdlp.backend]()


def get_extractor() -> ExtractorBackend:
    """FastAPI dependency: a fresh adapter per request"""
    return build_extractor()
