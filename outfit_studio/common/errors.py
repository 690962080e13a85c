"""Outfit Studio 的例外類別。

每個例外帶有 ``http_status``，供 API 層轉換為 JSON 錯誤回應。
"""

from __future__ import annotations


class StudioError(Exception):
    """所有可回報給使用者之錯誤的基底類別。"""

    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "type": type(self).__name__}


class ValidationError(StudioError):
    """表單缺少必要欄位，使用者修正後可重新送出。"""

    http_status = 400


class UnsupportedFormatError(StudioError):
    """圖片無法轉換為 API 可接受的格式。"""

    http_status = 415

    def __init__(self, mime_type: str, detail: str | None = None) -> None:
        message = (
            f"Failed to process image format: {mime_type or 'unknown'}. "
            "Please upload a standard image format (JPEG, PNG)."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.mime_type = mime_type


class GenerationError(StudioError):
    """生成服務拒絕了這次呼叫（金鑰、配額、內容格式等）。"""

    http_status = 502


class EmptyResultError(GenerationError):
    """呼叫成功，但回應中沒有任何圖片。"""


class ConflictError(StudioError):
    http_status = 409


class AuthError(StudioError):
    http_status = 401


class StorageError(StudioError):
    """儲存後端發生 I/O 或資料庫錯誤。"""

    http_status = 500


class CapacityError(StorageError):
    """儲存空間已滿。"""

    http_status = 507


class MissingCredentialError(StudioError):
    """啟動時缺少生成服務的 API 金鑰。"""
