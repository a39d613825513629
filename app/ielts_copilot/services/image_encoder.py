"""
Image encoding for multi-part Gemini requests.
Turns uploaded or on-disk images into bare base64 payloads with a media type.
"""
from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask import current_app
from werkzeug.datastructures import FileStorage

from .errors import EncodingFailure

DEFAULT_MIME_TYPE = 'image/jpeg'

MIME_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.heic': 'image/heic',
    '.heif': 'image/heif',
}

_DATA_URI_MARKER = ';base64,'

ImageResource = Union[FileStorage, str, os.PathLike, bytes, Any]


@dataclass(frozen=True)
class EncodedImage:
    """Base64 image payload without any data-URI prefix."""

    media_type: str
    data: str

    def to_part(self) -> Dict[str, Any]:
        """Gemini REST inline image part."""
        return {"inlineData": {"mimeType": self.media_type, "data": self.data}}


def guess_mime_type(filename: Optional[str]) -> str:
    """Determine MIME type from file extension."""
    if not filename:
        return DEFAULT_MIME_TYPE
    ext = Path(filename).suffix.lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def _read_bytes(resource: ImageResource) -> tuple[bytes, Optional[str], Optional[str]]:
    """Return (raw bytes, declared mime type, filename) for a supported resource."""
    if isinstance(resource, FileStorage):
        resource.stream.seek(0)
        raw = resource.read()
        declared = resource.mimetype if resource.mimetype and resource.mimetype.startswith('image/') else None
        return raw, declared, resource.filename
    if isinstance(resource, (bytes, bytearray)):
        return bytes(resource), None, None
    if isinstance(resource, (str, os.PathLike)):
        path = Path(resource)
        with path.open('rb') as f:
            return f.read(), None, path.name
    if hasattr(resource, 'read'):
        raw = resource.read()
        if not isinstance(raw, (bytes, bytearray)):
            raise TypeError(f"Expected a binary file object, got {type(raw).__name__} from read()")
        return bytes(raw), None, getattr(resource, 'name', None)
    raise TypeError(f"Unsupported image resource: {type(resource).__name__}")


def encode_image(resource: ImageResource, media_type: Optional[str] = None) -> EncodedImage:
    """
    Read an image resource to completion and base64-encode it.

    Args:
        resource: FileStorage upload, filesystem path, raw bytes or binary file object
        media_type: Explicit media type; overrides whatever the resource declares

    Returns:
        EncodedImage with the bare base64 string

    Raises:
        EncodingFailure: if the resource cannot be read or is empty
    """
    try:
        raw, declared, filename = _read_bytes(resource)
    except (OSError, TypeError, ValueError) as exc:
        current_app.logger.error(f"Failed to read image: {exc}")
        raise EncodingFailure() from exc

    if not raw:
        current_app.logger.error("Failed to read image: resource is empty")
        raise EncodingFailure("The uploaded image is empty.")

    mime_type = media_type or declared or guess_mime_type(filename)
    data = base64.standard_b64encode(raw).decode('utf-8')
    current_app.logger.debug(f"Encoded image {filename or '<bytes>'} ({mime_type}, {len(raw)} bytes)")
    return EncodedImage(media_type=mime_type, data=data)


def to_data_uri(image: EncodedImage) -> str:
    """Attach the data-URI prefix for local previews."""
    return f"data:{image.media_type}{_DATA_URI_MARKER}{image.data}"


def strip_data_uri(value: str) -> str:
    """Return the base64 payload of a data URI, or the value unchanged if it has no prefix."""
    if value.startswith('data:') and _DATA_URI_MARKER in value:
        return value.split(_DATA_URI_MARKER, 1)[1]
    return value


def decode_image(image: EncodedImage) -> bytes:
    """Decode the payload back to raw bytes."""
    try:
        return base64.b64decode(image.data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncodingFailure("Image payload is not valid base64.") from exc
