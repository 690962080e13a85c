"""將上傳圖片轉換為生成 API 可接受格式的模組。"""

from __future__ import annotations

import base64
import logging
from io import BytesIO

import pillow_heif
from PIL import Image

from ..common.errors import UnsupportedFormatError
from .generation_types import EncodedImage, RawImage

pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

JPEG_QUALITY = 95
BACKGROUND_COLOR = (255, 255, 255)


class ImageNormalizer:
    """支援的格式直接編碼，其餘格式解碼後鋪上白底並轉為 JPEG。"""

    SUPPORTED_MIME_TYPES = frozenset(
        {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}
    )

    def normalize(self, raw_image: RawImage) -> EncodedImage:
        declared = self._clean_mime_type(raw_image.mime_type)
        if not raw_image.data:
            raise UnsupportedFormatError(declared, "empty file")

        if declared in self.SUPPORTED_MIME_TYPES:
            return EncodedImage(mime_type=declared, data=self._b64(raw_image.data))

        logger.info("Converting %s upload to JPEG", declared or "unknown")
        return EncodedImage(
            mime_type="image/jpeg",
            data=self._b64(self._convert_to_jpeg(raw_image.data, declared)),
        )

    def _convert_to_jpeg(self, data: bytes, declared: str) -> bytes:
        try:
            with Image.open(BytesIO(data)) as img:
                img.seek(0)
                with img.convert("RGBA") as rgba, Image.new(
                    "RGB", rgba.size, BACKGROUND_COLOR
                ) as canvas:
                    # alpha 通道作為遮罩，透明區域保留白底
                    canvas.paste(rgba, mask=rgba.getchannel("A"))
                    buffer = BytesIO()
                    canvas.save(buffer, format="JPEG", quality=JPEG_QUALITY)
                    return buffer.getvalue()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
            logger.warning("Image decode failed for %s: %s", declared, exc)
            raise UnsupportedFormatError(declared) from exc

    @staticmethod
    def _clean_mime_type(mime_type: str) -> str:
        return (mime_type or "").split(";", 1)[0].strip().lower()

    @staticmethod
    def _b64(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")
