# doconvert/merge.py
import logging
from io import BytesIO
from typing import Optional, Sequence

from PyPDF2 import PdfReader, PdfWriter

from doconvert.errors import MergeFailed

logger = logging.getLogger(__name__)


def _label(index: int, names: Optional[Sequence[str]]) -> str:
    if names and index < len(names) and names[index]:
        return f"#{index + 1} ({names[index]})"
    return f"#{index + 1}"


def count_pages(data: bytes) -> int:
    return len(PdfReader(BytesIO(data)).pages)


def merge_pdfs(pdfs: Sequence[bytes], names: Optional[Sequence[str]] = None) -> bytes:
    """
    Concatenate every page of every PDF in ``pdfs``, in order.

    All or nothing: the first input that cannot be parsed strictly, or that
    has no pages, aborts the merge with MergeFailed and the partial writer is
    thrown away.
    """
    writer = PdfWriter()
    total = 0

    for i, data in enumerate(pdfs):
        try:
            reader = PdfReader(BytesIO(data), strict=True)
            added = 0
            for page in reader.pages:
                writer.add_page(page)
                added += 1
        except Exception as e:
            logger.error("Merge aborted on PDF %s: %r", _label(i, names), e)
            raise MergeFailed(f"Failed to read PDF {_label(i, names)}: {e}") from e

        if added == 0:
            logger.error("Merge aborted on PDF %s: no pages", _label(i, names))
            raise MergeFailed(f"PDF {_label(i, names)} has no pages")
        total += added

    out = BytesIO()
    try:
        writer.write(out)
    except Exception as e:
        raise MergeFailed(f"Failed to write merged PDF: {e}") from e

    logger.info("Merged %d PDF(s) into %d page(s)", len(pdfs), total)
    return out.getvalue()
