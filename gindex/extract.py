import enum
import logging
from pathlib import PurePosixPath

import pymupdf

from .config import Config
from .errors import (
    EncryptedDocument,
    ExtractionError,
    MalformedDocument,
    SizeLimitExceeded,
    TruncatedHeader,
    UnsupportedFormat,
)
from .models import ExtractedContent

log = logging.getLogger(__name__)

BINARY_PROBE_BYTES = 8 * 1024  # 8 KB

# NEV (neural event) basic header: the comment field fills bytes 76..332.
NEV_HEADER_BYTES = 332
NEV_COMMENT_OFFSET = 76


class ContentClass(enum.Enum):
    PLAIN_TEXT = "text"
    PDF = "pdf"
    FIXED_HEADER = "nev"
    UNSUPPORTED = "unsupported"


EXTENSION_TO_CLASS: dict[str, ContentClass] = {
    ".pdf": ContentClass.PDF,
    ".nev": ContentClass.FIXED_HEADER,
}


def class_from_path(path: str) -> ContentClass | None:
    return EXTENSION_TO_CLASS.get(PurePosixPath(path).suffix.lower())


def looks_like_text(head: bytes) -> bool:
    probe = head[:BINARY_PROBE_BYTES]
    if b"\x00" in probe:
        return False
    try:
        probe.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut off by the probe boundary is still text.
        return e.reason == "unexpected end of data" and e.start >= len(probe) - 3
    return True


def classify(path: str, head: bytes) -> ContentClass:
    cls = class_from_path(path)
    if cls is not None:
        return cls
    if looks_like_text(head):
        return ContentClass.PLAIN_TEXT
    return ContentClass.UNSUPPORTED


def size_limit(cls: ContentClass, cfg: Config) -> int | None:
    if cls is ContentClass.PLAIN_TEXT:
        return cfg.text_max
    if cls is ContentClass.PDF:
        return cfg.pdf_max
    if cls is ContentClass.FIXED_HEADER:
        return NEV_HEADER_BYTES
    return None


def _check_size(data: bytes, limit: int) -> None:
    if len(data) > limit:
        raise SizeLimitExceeded(len(data), limit)


def extract_plain_text(data: bytes, limit: int) -> str:
    _check_size(data, limit)
    return data.decode("utf-8", errors="replace")


def extract_pdf_text(data: bytes, limit: int) -> str:
    """Text of every page of a PDF, in document order.

    Encrypted documents are refused outright, even when they would open
    with an empty password.
    """
    _check_size(data, limit)
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except RuntimeError as e:
        raise MalformedDocument(f"cannot parse PDF: {e}") from e

    with doc:
        if doc.needs_pass or doc.is_encrypted or (doc.metadata or {}).get("encryption"):
            raise EncryptedDocument("PDF encrypted")
        pages = []
        for page in doc:
            # get_text() interprets the page's content streams as one
            # stream, concatenated in their listed order.
            try:
                pages.append(page.get_text())
            except RuntimeError as e:
                raise MalformedDocument(f"page {page.number + 1}: {e}") from e

    text = "".join(pages)
    if not text.strip():
        raise MalformedDocument("Could not extract text from PDF")
    return text


def extract_fixed_header_comment(data: bytes) -> str:
    if len(data) < NEV_HEADER_BYTES:
        raise TruncatedHeader(f"header needs {NEV_HEADER_BYTES} bytes, got {len(data)}")
    comment = data[NEV_COMMENT_OFFSET:NEV_HEADER_BYTES]
    return comment.rstrip(b"\x00").decode("utf-8", errors="replace")


def extract(cls: ContentClass, data: bytes, cfg: Config) -> ExtractedContent:
    try:
        if cls is ContentClass.PLAIN_TEXT:
            text = extract_plain_text(data, cfg.text_max)
        elif cls is ContentClass.PDF:
            text = extract_pdf_text(data, cfg.pdf_max)
        elif cls is ContentClass.FIXED_HEADER:
            text = extract_fixed_header_comment(data)
        else:
            raise UnsupportedFormat("no text extractor for this format")
    except UnsupportedFormat as e:
        return ExtractedContent(status="skipped-unsupported", reason=str(e))
    except SizeLimitExceeded as e:
        return ExtractedContent(status="skipped-too-large", reason=str(e))
    except ExtractionError as e:
        return ExtractedContent(status="failed", reason=f"{type(e).__name__}: {e}")
    return ExtractedContent(text=text)
