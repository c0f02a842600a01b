import base64
import json
import os
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from config import DEFAULT_MIME_TYPE

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
}


def is_https_url(url: Optional[str]) -> bool:
    """Check if string is an absolute HTTPS URL"""
    if not url:
        return False
    result = urlparse(url)
    return result.scheme == "https" and bool(result.netloc)


def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    return os.path.splitext(filename)[1].lower()


def guess_mime_type(filename: Optional[str], declared: Optional[str] = None) -> str:
    """Prefer the declared image type, then the extension, then JPEG"""
    if declared and declared.startswith("image/"):
        return declared
    if filename:
        return IMAGE_MIME_TYPES.get(get_file_extension(filename), DEFAULT_MIME_TYPE)
    return DEFAULT_MIME_TYPE


def encode_data_uri(content: bytes, mime_type: str) -> str:
    """Encode raw image bytes as a base64 data URI"""
    b64 = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{b64}"


def serialize_body(payload: Dict[str, Any]) -> str:
    """Serialize once; the returned string is both signed and sent."""
    return json.dumps(payload, separators=(",", ":"))


def parse_json(text: str) -> Any:
    """Parse a provider body, returning None when it is not JSON"""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None
