from __future__ import annotations
from dataclasses import dataclass
from PIL import Image, UnidentifiedImageError
import io


ALLOWED_IMAGE_MIME = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
EXT_FOR_MIME = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
MIME_FOR_FORMAT = {"JPEG": "image/jpeg", "PNG": "image/png", "GIF": "image/gif", "WEBP": "image/webp"}


@dataclass(frozen=True)
class UploadedFile:
    """An in-memory upload as handed over by the HTTP layer."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def sniff_mime(data: bytes) -> str | None:
    # Detect the real format from the bytes; the declared content-type is client-controlled
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return MIME_FOR_FORMAT.get(img.format or "")
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None


def check_image(upload: UploadedFile, max_bytes: int) -> str | None:
    """Return an error message for an unacceptable image upload, or None."""
    if (upload.content_type or "").lower() not in ALLOWED_IMAGE_MIME:
        return "Invalid file type for image upload. Only JPEG, PNG, GIF, and WebP are allowed."
    if upload.size > max_bytes:
        return f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
    if sniff_mime(upload.data) is None:
        return f"Invalid image file: {upload.filename}"
    return None


def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime.lower(), "bin")
