"""Gemini 影像生成 API 的呼叫與回應解析。"""

from __future__ import annotations

import base64
import logging
from typing import Any, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..common.errors import EmptyResultError, GenerationError, MissingCredentialError
from ..common.services.logging import log_event
from .generation_types import EncodedImage, ImagePart, Part, TextPart

DEFAULT_MODEL = "gemini-2.5-flash-image"
DEFAULT_SAFETY_LEVEL = "BLOCK_ONLY_HIGH"

_HARM_CATEGORIES = (
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GenerationClient:
    """
    封裝 google-genai Client：
    - 一次同步呼叫 generate_content，不重試、不另設逾時
    - 依文件順序回傳第一個帶有 inline image 的 part
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = DEFAULT_MODEL,
        safety_level: str = DEFAULT_SAFETY_LEVEL,
        client: Optional[Any] = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.model_name = model_name or DEFAULT_MODEL
        self.safety_level = safety_level or DEFAULT_SAFETY_LEVEL

        if client is not None:
            self.client = client
        else:
            if not api_key:
                raise MissingCredentialError(
                    "GEMINI_API_KEY is not configured; image generation is unavailable."
                )
            self.client = genai.Client(api_key=api_key)
        self.logger.info("GenerationClient 初始化完成，模型：%s", self.model_name)

    # Public API -----------------------------------------------------------------

    def generate(self, parts: Sequence[Part], system_instruction: str) -> str:
        contents = [genai_types.Content(role="user", parts=[self._to_sdk_part(p) for p in parts])]
        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            safety_settings=self._safety_settings(),
        )

        log_event("info", "generation.request", model=self.model_name, parts=len(parts))
        try:
            response = self.client.models.generate_content(
                model=self.model_name, contents=contents, config=config
            )
        except genai_errors.APIError as exc:
            self.logger.error("Gemini API error: %s", exc)
            raise GenerationError(str(exc)) from exc
        except (httpx.HTTPError, OSError, ValueError) as exc:
            self.logger.error("Gemini call failed: %s: %s", type(exc).__name__, exc)
            raise GenerationError(str(exc)) from exc

        candidates = parse_candidates(response)
        image = find_first_image(candidates)
        log_event("info", "generation.response", candidates=len(candidates), mime_type=image.mime_type)
        return f"data:image/png;base64,{image.data}"

    # Internal helpers ------------------------------------------------------------

    @staticmethod
    def _to_sdk_part(part: Part):
        if isinstance(part, TextPart):
            return genai_types.Part.from_text(text=part.text)
        return genai_types.Part.from_bytes(
            data=base64.b64decode(part.image.data), mime_type=part.image.mime_type
        )

    def _safety_settings(self) -> List[Any]:
        threshold = getattr(
            genai_types.HarmBlockThreshold,
            self.safety_level,
            genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
        )
        return [
            genai_types.SafetySetting(
                category=getattr(genai_types.HarmCategory, name), threshold=threshold
            )
            for name in _HARM_CATEGORIES
        ]


def _field(obj: Any, *names: str) -> Any:
    """同時支援 SDK 物件與 REST JSON dict（snake_case 或 camelCase）。"""

    for name in names:
        if isinstance(obj, dict):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def _parse_part(raw: Any) -> Optional[Part]:
    inline = _field(raw, "inline_data", "inlineData")
    if inline is not None:
        data = _field(inline, "data")
        if data:
            if isinstance(data, (bytes, bytearray)):
                data = base64.b64encode(bytes(data)).decode("ascii")
            mime_type = _field(inline, "mime_type", "mimeType") or "image/png"
            return ImagePart(EncodedImage(mime_type=mime_type, data=str(data)))
    text = _field(raw, "text")
    if isinstance(text, str):
        return TextPart(text)
    return None


def parse_candidates(response: Any) -> List[List[Part]]:
    """將巢狀回應轉為每個 candidate 的 Part 清單，缺漏的層級視為空。"""

    parsed: List[List[Part]] = []
    for candidate in _field(response, "candidates") or []:
        content = _field(candidate, "content")
        raw_parts = (_field(content, "parts") if content is not None else None) or []
        parts = [p for p in (_parse_part(raw) for raw in raw_parts) if p is not None]
        parsed.append(parts)
    return parsed


def find_first_image(candidates: List[List[Part]]) -> EncodedImage:
    for parts in candidates:
        for part in parts:
            if isinstance(part, ImagePart):
                return part.image

    texts = [p.text.strip() for parts in candidates for p in parts if isinstance(p, TextPart)]
    message = "No image generated in the response"
    if any(texts):
        message = f"{message}: {' '.join(t for t in texts if t)}"
    raise EmptyResultError(message)
