# doconvert/assets.py
from pathlib import Path
from typing import NamedTuple, Optional


MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


class InputAsset(NamedTuple):
    """One uploaded file, held in memory for the duration of a request."""

    data: bytes
    filename: str

    @property
    def suffix(self) -> str:
        return Path(self.filename or "").suffix.lower()

    @property
    def kind(self) -> Optional[str]:
        return MEDIA_TYPES.get(self.suffix)


def media_type_for(ext: str) -> str:
    ext = ext.lower()
    if not ext.startswith("."):
        ext = "." + ext
    return MEDIA_TYPES.get(ext, "application/octet-stream")
