from __future__ import annotations

from io import BytesIO

import fitz
import pytest
from PIL import Image

from receipt_vault.core.errors import FormatError
from receipt_vault.modules.normalization import service as normalization_service
from receipt_vault.modules.normalization.service import normalize

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _image_bytes(fmt: str, *, mode: str = "RGB", color=(255, 255, 255), size=(24, 16)) -> bytes:
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


def _pdf_bytes(pages: int = 1) -> bytes:
    doc = fitz.open()
    for n in range(pages):
        page = doc.new_page(width=144, height=216)
        page.insert_text((12, 36), f"CVS Pharmacy page {n + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def test_png_input_is_returned_unchanged():
    data = _image_bytes("PNG")
    out = normalize(data, "image/png")
    assert out.data is data
    assert out.content_type == "image/png"
    assert out.converted is False


def test_jpeg_is_converted_to_png():
    out = normalize(_image_bytes("JPEG"), "image/jpeg")
    assert out.converted is True
    assert out.content_type == "image/png"
    assert out.data.startswith(PNG_MAGIC)
    assert Image.open(BytesIO(out.data)).size == (24, 16)


def test_missing_content_type_decodes_as_generic_raster():
    out = normalize(_image_bytes("WEBP"), None)
    assert out.converted is True
    assert out.data.startswith(PNG_MAGIC)


def test_cmyk_jpeg_is_flattened_to_rgb():
    out = normalize(_image_bytes("JPEG", mode="CMYK", color=(0, 0, 0, 0)), "image/jpeg")
    assert Image.open(BytesIO(out.data)).mode == "RGB"


def test_animated_gif_keeps_first_frame_only():
    first = Image.new("RGB", (10, 10), "red")
    second = Image.new("RGB", (10, 10), "blue")
    buf = BytesIO()
    first.save(buf, format="GIF", save_all=True, append_images=[second])

    out = normalize(buf.getvalue(), "image/gif")
    image = Image.open(BytesIO(out.data))
    assert image.format == "PNG"
    assert getattr(image, "n_frames", 1) == 1


def test_pdf_first_page_is_rendered():
    out = normalize(_pdf_bytes(pages=3), "application/pdf")
    assert out.converted is True
    assert out.data.startswith(PNG_MAGIC)
    # 144x216pt at 72 dpi (set for the test run)
    assert Image.open(BytesIO(out.data)).size == (144, 216)


def test_corrupt_pdf_raises_format_error():
    with pytest.raises(FormatError) as exc_info:
        normalize(b"this is not a pdf at all", "application/pdf")
    assert exc_info.value.format_name == "pdf"


def test_undecodable_raster_raises_format_error():
    with pytest.raises(FormatError) as exc_info:
        normalize(b"\x00\x01\x02\x03 not an image", "image/jpeg")
    assert exc_info.value.format_name == "raster"
    assert "unsupported image format" in exc_info.value.detail


def test_heif_magic_bytes_route_to_heif_decoder_even_when_labelled_jpeg(monkeypatch):
    seen: list[bytes] = []

    def _fake_decode_heif(data: bytes) -> Image.Image:
        seen.append(data)
        return Image.new("RGB", (8, 8), "green")

    monkeypatch.setattr(normalization_service, "decode_heif", _fake_decode_heif)
    heic = b"\x00\x00\x00\x18ftypheic" + b"\x00" * 32

    out = normalize(heic, "image/jpeg")
    assert seen == [heic]
    assert out.converted is True
    assert out.data.startswith(PNG_MAGIC)


def test_broken_heif_raises_format_error():
    with pytest.raises(FormatError) as exc_info:
        normalize(b"\x00\x00\x00\x18ftypheic" + b"\x00" * 32, "image/heic")
    assert exc_info.value.format_name == "heif"
