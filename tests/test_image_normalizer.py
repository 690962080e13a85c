import base64
from io import BytesIO

import pytest
from PIL import Image

from conftest import b64, make_image_bytes
from outfit_studio.common.errors import UnsupportedFormatError
from outfit_studio.services.generation_types import RawImage
from outfit_studio.services.image_normalizer import ImageNormalizer


@pytest.mark.parametrize(
    "mime_type", ["image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"]
)
def test_supported_types_pass_through(mime_type):
    raw = b"raw-bytes-" + mime_type.encode()
    encoded = ImageNormalizer().normalize(RawImage(data=raw, mime_type=mime_type))

    assert encoded.mime_type == mime_type
    assert encoded.data == b64(raw)
    assert not encoded.data.startswith("data:")
    assert "," not in encoded.data


def test_declared_type_is_compared_case_insensitively():
    encoded = ImageNormalizer().normalize(RawImage(data=b"abc", mime_type="Image/PNG; charset=x"))
    assert encoded.mime_type == "image/png"


def test_unsupported_type_is_flattened_to_jpeg_on_white():
    transparent_png = make_image_bytes("PNG", mode="RGBA", color=(0, 0, 0, 0))

    encoded = ImageNormalizer().normalize(RawImage(data=transparent_png, mime_type="image/avif"))

    assert encoded.mime_type == "image/jpeg"
    with Image.open(BytesIO(base64.b64decode(encoded.data))) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        r, g, b = img.getpixel((4, 4))
        assert min(r, g, b) > 240


def test_unknown_type_with_decodable_bitmap_is_converted():
    bmp = make_image_bytes("BMP", color=(10, 120, 200))
    encoded = ImageNormalizer().normalize(RawImage(data=bmp, mime_type="image/bmp"))

    assert encoded.mime_type == "image/jpeg"
    with Image.open(BytesIO(base64.b64decode(encoded.data))) as img:
        assert img.size == (8, 8)


def test_corrupt_unsupported_file_raises_with_declared_type():
    with pytest.raises(UnsupportedFormatError) as excinfo:
        ImageNormalizer().normalize(RawImage(data=b"definitely not an image", mime_type="image/avif"))

    assert excinfo.value.mime_type == "image/avif"
    assert "image/avif" in str(excinfo.value)


def test_empty_upload_is_rejected():
    with pytest.raises(UnsupportedFormatError):
        ImageNormalizer().normalize(RawImage(data=b"", mime_type="image/jpeg"))
