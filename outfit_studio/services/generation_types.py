"""生成流程共用的資料結構。"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from werkzeug.datastructures import FileStorage


class GenerationMode(str, Enum):
    """三種生成策略，值與前端表單使用的字串一致。"""

    AI_MODEL = "ai-model"
    CUSTOM_MODEL = "custom-model"
    FLAT_LAY = "flat-lay"

    @classmethod
    def parse(cls, value: object) -> "GenerationMode":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("_", "-")
        for mode in cls:
            if text == mode.value:
                return mode
        raise ValueError(f"Unknown generation mode: {value!r}")


@dataclass(frozen=True)
class RawImage:
    """使用者上傳的原始圖片與其宣告的 MIME 類型。"""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @classmethod
    def from_file_storage(cls, uploaded: FileStorage) -> "RawImage":
        data = uploaded.read()
        mime_type = (uploaded.mimetype or "").strip()
        if not mime_type or mime_type == "application/octet-stream":
            guessed, _ = mimetypes.guess_type(uploaded.filename or "")
            mime_type = guessed or "application/octet-stream"
        return cls(data=data, mime_type=mime_type, filename=uploaded.filename)


@dataclass(frozen=True)
class EncodedImage:
    """API 可接受的圖片：MIME 類型加上不含 data URL 前綴的 base64 內容。"""

    mime_type: str
    data: str


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    image: EncodedImage


Part = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class GarmentForm:
    """表單送出的原始輸入，圖片尚未正規化。"""

    mode: GenerationMode
    garment_description: str
    model_spec: str = ""
    pose: str = ""
    garment_image: Optional[RawImage] = None
    reference_model_image: Optional[RawImage] = None


@dataclass(frozen=True)
class GenerationRequest:
    mode: GenerationMode
    garment_description: str
    garment_image: Optional[EncodedImage]
    model_spec: Optional[str] = None
    pose: Optional[str] = None
    reference_model_image: Optional[EncodedImage] = None
