from __future__ import annotations

import pytest

from trip_ledger.modules.extraction.files import (
    FileKind,
    detect_file_kind,
    image_media_type,
    statement_text,
)
from trip_ledger.modules.extraction.schemas import UploadedFile


def _upload(filename: str, body: bytes, content_type: str | None = None) -> UploadedFile:
    return UploadedFile(filename=filename, content_type=content_type, body=body)


def test_detect_file_kind_uses_magic_bytes_over_extension():
    assert detect_file_kind(_upload("receipt.pdf", b"\xff\xd8\xff\xe0jpegdata")) == FileKind.IMAGE
    assert detect_file_kind(_upload("photo.jpg", b"%PDF-1.7\n...")) == FileKind.PDF


def test_detect_file_kind_treats_text_bytes_as_text_even_when_named_pdf():
    kind = detect_file_kind(
        _upload("statement.pdf", b"Date,Amount\n2024-08-16,45.45\n", "application/pdf")
    )
    assert kind == FileKind.TEXT


def test_detect_file_kind_falls_back_to_image_content_type():
    assert detect_file_kind(_upload("x.heic", b"\x00\x00\x00\x18ftypheic", "image/heic")) == (
        FileKind.IMAGE
    )
    assert detect_file_kind(_upload("blob.bin", b"\x00\x01\x02\x03")) == FileKind.UNKNOWN


def test_image_media_type_sniffs_when_content_type_missing():
    assert image_media_type(_upload("a", b"\x89PNG\r\n\x1a\nrest")) == "image/png"
    assert image_media_type(_upload("a", b"RIFF\x00\x00\x00\x00WEBPVP8 ")) == "image/webp"
    assert image_media_type(_upload("a", b"\xff\xd8\xff\xe0")) == "image/jpeg"
    assert image_media_type(_upload("a", b"", "image/gif")) == "image/gif"


def test_statement_text_decodes_cp1250_exports():
    body = "Dátum;Partner;Összeg\n2024.08.16;Konoba;-45,45\n".encode("cp1250")
    text = statement_text(_upload("export.csv", body, "text/csv"))
    assert "Összeg" in text
    assert "Konoba" in text


def test_statement_text_strips_utf8_bom():
    text = statement_text(_upload("export.csv", b"\xef\xbb\xbfDate,Amount\n"))
    assert text.startswith("Date")


def test_statement_text_rejects_images():
    with pytest.raises(ValueError):
        statement_text(_upload("statement.png", b"\x89PNG\r\n\x1a\nrest"))
