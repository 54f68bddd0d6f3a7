from __future__ import annotations

import enum
from io import BytesIO

from pypdf import PdfReader

from trip_ledger.modules.extraction.schemas import UploadedFile

_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".heic", ".heif")
_TEXT_EXTENSIONS = (".csv", ".txt", ".tsv")


class FileKind(str, enum.Enum):
    IMAGE = "image"
    PDF = "pdf"
    TEXT = "text"
    UNKNOWN = "unknown"


def detect_file_kind(upload: UploadedFile) -> FileKind:
    body = upload.body
    if _looks_like_pdf_bytes(body):
        return FileKind.PDF
    if _looks_like_image_bytes(body):
        return FileKind.IMAGE
    if _looks_like_text_bytes(body):
        return FileKind.TEXT

    # Fallback to filename/content-type hints.
    name = upload.filename.lower()
    ctype = (upload.content_type or "").lower()
    if ctype.startswith("image/") or name.endswith(_IMAGE_EXTENSIONS):
        return FileKind.IMAGE
    return FileKind.UNKNOWN


def image_media_type(upload: UploadedFile) -> str:
    ctype = (upload.content_type or "").lower()
    if ctype.startswith("image/"):
        return ctype
    b = upload.body.lstrip()
    if b.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if b.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(b) >= 12 and b.startswith(b"RIFF") and b[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def statement_text(upload: UploadedFile) -> str:
    """Plain text of a statement document (CSV/TXT as-is, PDF via its text layer)."""
    kind = detect_file_kind(upload)
    if kind == FileKind.PDF:
        return "\n\n".join(_extract_pdf_pages(upload.body)).strip()
    if kind == FileKind.TEXT or upload.filename.lower().endswith(_TEXT_EXTENSIONS):
        return _decode_text_bytes(upload.body)
    raise ValueError(f"Unsupported statement file: {upload.filename}")


def _decode_text_bytes(body: bytes) -> str:
    if body.startswith(b"\xef\xbb\xbf"):
        body = body[3:]
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        # Hungarian bank exports are frequently cp1250.
        return body.decode("cp1250", errors="replace")


def _extract_pdf_pages(body: bytes) -> list[str]:
    reader = PdfReader(BytesIO(body))
    return [
        (page.extract_text() or "").replace("\u202f", " ").replace("\xa0", " ")
        for page in reader.pages
    ]


def _looks_like_pdf_bytes(body: bytes) -> bool:
    if not body:
        return False
    b = body.lstrip()
    if b.startswith(b"\xef\xbb\xbf"):
        b = b[3:].lstrip()
    return b.startswith(b"%PDF")


def _looks_like_image_bytes(body: bytes) -> bool:
    if not body:
        return False
    b = body.lstrip()
    return (
        b.startswith(b"\x89PNG\r\n\x1a\n")
        or b.startswith(b"\xff\xd8\xff")
        or b.startswith(b"II*\x00")
        or b.startswith(b"MM\x00*")
        or b.startswith((b"GIF87a", b"GIF89a"))
        or (len(b) >= 12 and b.startswith(b"RIFF") and b[8:12] == b"WEBP")
    )


def _looks_like_text_bytes(body: bytes) -> bool:
    if not body:
        return False
    sample = body[:4096]
    if b"\x00" in sample:
        return False
    stripped = sample.lstrip()
    if stripped.startswith(b"\xef\xbb\xbf"):
        stripped = stripped[3:]
    try:
        stripped.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        # A cut multi-byte sequence at the sample boundary is still text.
        try:
            stripped[:-3].decode("utf-8", errors="strict")
        except UnicodeDecodeError:
            return False

    nontext = 0
    for ch in stripped:
        if ch in {9, 10, 13}:
            continue
        if 32 <= ch <= 126 or ch >= 128:
            continue
        nontext += 1
    return (nontext / max(1, len(stripped))) <= 0.02
