import re
import unicodedata
from urllib.parse import quote


def sanitize_filename(name: str, max_length: int = 200) -> str:
    """Sanitize filename for cross-platform compatibility"""
    name = unicodedata.normalize("NFKC", name)
    name = re.sub(r'[\\/:*?"<>|]', '_', name)
    name = re.sub(r'[\x00-\x1f\x7f]', '', name)

    windows_reserved = {
        'CON', 'PRN', 'AUX', 'NUL',
        'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
        'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
    }
    if name.upper() in windows_reserved:
        name = f"_{name}"

    return name[:max_length].strip()


def with_extension(name: str, ext: str) -> str:
    """Append ext unless the name already ends with it"""
    if not ext or name.lower().endswith(f".{ext.lower()}"):
        return name
    return f"{name}.{ext}"


def content_disposition(filename: str) -> str:
    """
    Build an ASCII-only attachment header.
    Both the plain and the RFC 5987 form carry the percent-encoded name, so
    quotes, slashes and non-ASCII titles never break the header value.
    """
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"
