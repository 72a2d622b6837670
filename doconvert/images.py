# doconvert/images.py
"""
Images -> PDF.

Every image becomes one page of the chosen paper size, scaled to fit inside a
fixed 36pt margin and centred. Images that fail to decode are skipped; the
request only fails when nothing could be placed at all.

The decoder is picked from the filename alone (``.png`` -> PNG, anything else
-> JPEG). A PNG uploaded as ``photo.jpg`` goes down the JPEG path, fails to
decode and is skipped.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import Iterable, List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image

from doconvert.assets import InputAsset
from doconvert.errors import DecodeFailure, EmptyOutput

logger = logging.getLogger(__name__)

MARGIN = 36  # points, 0.5 inch on every side

# MuPDF decode errors derive from FzErrorBase, not RuntimeError
EMBED_ERRORS = (RuntimeError, ValueError, fitz.mupdf.FzErrorBase)


class PageSize(Enum):
    A4 = (595, 842)
    LETTER = (612, 792)

    @property
    def width(self) -> int:
        return self.value[0]

    @property
    def height(self) -> int:
        return self.value[1]

    @classmethod
    def from_name(cls, name: Optional[str]) -> "PageSize":
        if (name or "").strip().upper() == "LETTER":
            return cls.LETTER
        return cls.A4


class Orientation(Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    AUTO = "auto"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Orientation":
        name = (name or "").strip().lower()
        if not name:
            return cls.AUTO
        try:
            return cls(name)
        except ValueError:
            # unknown values never trigger a swap
            return cls.PORTRAIT


class ImageKind(Enum):
    PNG = "PNG"
    JPEG = "JPEG"

    @classmethod
    def from_filename(cls, filename: Optional[str]) -> "ImageKind":
        if (filename or "").lower().endswith(".png"):
            return cls.PNG
        return cls.JPEG


@dataclass(frozen=True)
class PageLayout:
    page_width: float
    page_height: float
    x: float
    y: float
    width: float
    height: float

    @property
    def is_landscape(self) -> bool:
        return self.page_width > self.page_height

    @property
    def rect(self) -> fitz.Rect:
        return fitz.Rect(self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class SkippedImage:
    filename: str
    reason: str


@dataclass
class AssemblyResult:
    data: bytes
    pages: List[PageLayout] = field(default_factory=list)
    skipped: List[SkippedImage] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def decode_image(data: bytes, kind: ImageKind) -> Tuple[int, int]:
    """Fully decode ``data`` with the decoder for ``kind`` and return its pixel size."""
    try:
        with Image.open(BytesIO(data), formats=[kind.value]) as img:
            img.load()
            width, height = img.size
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"not a valid {kind.value} image: {e}") from e

    if width <= 0 or height <= 0:
        raise DecodeFailure(f"image has no pixels ({width}x{height})")
    return width, height


def layout_page(image_width: int, image_height: int, page_size: PageSize, orientation: Orientation) -> PageLayout:
    pw, ph = page_size.width, page_size.height
    if orientation is Orientation.LANDSCAPE or (orientation is Orientation.AUTO and image_width > image_height):
        pw, ph = ph, pw

    scale = min((pw - 2 * MARGIN) / image_width, (ph - 2 * MARGIN) / image_height)
    w = image_width * scale
    h = image_height * scale
    return PageLayout(
        page_width=pw,
        page_height=ph,
        x=(pw - w) / 2,
        y=(ph - h) / 2,
        width=w,
        height=h,
    )


class ImagePdfBuilder:
    """Accumulates one page per image into an owned PDF document.

    ``finish()`` serializes the document and may only be called once.
    """

    def __init__(self, page_size: PageSize = PageSize.A4, orientation: Orientation = Orientation.AUTO):
        self.page_size = page_size
        self.orientation = orientation
        self.pages: List[PageLayout] = []
        self.skipped: List[SkippedImage] = []
        self._doc = fitz.open()

    def add(self, asset) -> Optional[PageLayout]:
        if self._doc is None:
            raise RuntimeError("builder already finished")

        data, filename = asset
        kind = ImageKind.from_filename(filename)
        try:
            iw, ih = decode_image(data, kind)
        except DecodeFailure as e:
            self._skip(filename, str(e))
            return None

        layout = layout_page(iw, ih, self.page_size, self.orientation)
        page = self._doc.new_page(width=layout.page_width, height=layout.page_height)
        try:
            page.insert_image(layout.rect, stream=data)
        except EMBED_ERRORS as e:
            self._doc.delete_page(page.number)
            self._skip(filename, f"could not embed image: {e}")
            return None

        self.pages.append(layout)
        return layout

    def finish(self) -> AssemblyResult:
        if self._doc is None:
            raise RuntimeError("builder already finished")

        doc, self._doc = self._doc, None
        try:
            if not self.pages:
                raise EmptyOutput("No valid images to convert")
            data = doc.tobytes()
        finally:
            doc.close()

        return AssemblyResult(data=data, pages=list(self.pages), skipped=list(self.skipped))

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    def _skip(self, filename: str, reason: str) -> None:
        logger.warning("Skipping image %r: %s", filename, reason)
        self.skipped.append(SkippedImage(filename=filename, reason=reason))


def build_image_pdf(
    images: Iterable[Tuple[bytes, str]],
    page_size: PageSize = PageSize.A4,
    orientation: Orientation = Orientation.AUTO,
) -> AssemblyResult:
    builder = ImagePdfBuilder(page_size, orientation)
    try:
        for data, filename in images:
            builder.add(InputAsset(data, filename))
    except BaseException:
        builder.close()
        raise
    result = builder.finish()

    logger.info(
        "Assembled %d page(s) from images (%s, %s), skipped %d",
        result.page_count,
        page_size.name,
        orientation.value,
        len(result.skipped),
    )
    return result


def assemble_images(
    images: Iterable[Tuple[bytes, str]],
    page_size: PageSize = PageSize.A4,
    orientation: Orientation = Orientation.AUTO,
) -> bytes:
    return build_image_pdf(images, page_size, orientation).data
