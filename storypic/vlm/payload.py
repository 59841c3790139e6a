"""
Purpose:
- Transportable image form handed to the story pipeline: base64 data + MIME tag.
- Reads raw uploads into that form (Pillow sniffs the real format) and parses data URIs.

Notes:
- Size and type checks happen here, before any model call.
- The decoded byte size is what counts against settings.max_image_bytes.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from io import BytesIO
import base64
import binascii
import re

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from ..core.errors import ImageRejectedError
from ..core.settings import settings

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)

# Pillow format name -> MIME type we hand to the models
PIL_FORMAT_TO_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",   # multi-picture JPEGs from phone cameras
    "WEBP": "image/webp",
}

UNREADABLE_MESSAGE = "Failed to read the image file."
WRONG_TYPE_MESSAGE = "Please choose a PNG, JPEG or WEBP image."


def size_message(max_bytes: int) -> str:
    # "4MB" for whole MiB, "4.5MB" otherwise; never rounds the limit down
    return f"Image size should be less than {max_bytes / (1024 * 1024):g}MB."


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ImagePayload(BaseModel):
    """
    Immutable base64 image. Built by read_image_file / from_data_uri, consumed once per run.
    """
    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.data.strip()

    @property
    def byte_size(self) -> int:
        # decoded length without decoding
        n = len(self.data)
        return max(0, (n * 3) // 4 - self.data[-2:].count("="))

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str, max_bytes: int | None = None) -> "ImagePayload":
        max_bytes = settings.max_image_bytes if max_bytes is None else max_bytes
        if len(raw) > max_bytes:
            raise ImageRejectedError(size_message(max_bytes))
        if mime_type not in settings.allowed_mime_types:
            raise ImageRejectedError(WRONG_TYPE_MESSAGE)
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    @classmethod
    def from_data_uri(cls, uri: str, max_bytes: int | None = None) -> "ImagePayload":
        """
        Parse 'data:<mime>;base64,<data>'. Raises ImageRejectedError on any malformed part.
        """
        m = DATA_URI_RE.match((uri or "").strip())
        if not m:
            raise ImageRejectedError("Image data must be a base64 data URI.")
        try:
            raw = base64.b64decode(m.group("data"), validate=True)
        except (binascii.Error, ValueError):
            raise ImageRejectedError(UNREADABLE_MESSAGE)
        return cls.from_bytes(raw, m.group("mime").lower(), max_bytes=max_bytes)


def sniff_mime(raw: bytes) -> Optional[str]:
    """
    Return the MIME type Pillow detects, None for anything that is not a picture.
    """
    with Image.open(BytesIO(raw)) as img:
        return PIL_FORMAT_TO_MIME.get((img.format or "").upper())


def read_image_file(upload: UploadedFile, max_bytes: int | None = None) -> ImagePayload:
    """
    Validate an upload and encode it. Blocking (Pillow); callers on the event loop use to_thread.
    """
    max_bytes = settings.max_image_bytes if max_bytes is None else max_bytes
    if upload.size > max_bytes:
        raise ImageRejectedError(size_message(max_bytes))

    declared = (upload.content_type or "").lower()
    if declared and declared != "application/octet-stream" and declared not in settings.allowed_mime_types:
        raise ImageRejectedError(WRONG_TYPE_MESSAGE)

    if not upload.data:
        raise ImageRejectedError(UNREADABLE_MESSAGE)
    try:
        mime = sniff_mime(upload.data)
    except (UnidentifiedImageError, OSError):
        raise ImageRejectedError(UNREADABLE_MESSAGE)
    if mime is None:
        raise ImageRejectedError(WRONG_TYPE_MESSAGE)

    return ImagePayload.from_bytes(upload.data, mime, max_bytes=max_bytes)
