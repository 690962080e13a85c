"""Outfit Studio 應用設定模組。"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "GEMINI_API_KEY": "",
    "GEMINI_MODEL": "gemini-2.5-flash-image",
    "GEMINI_SAFETY_LEVEL": "BLOCK_ONLY_HIGH",
    "PERSISTENCE_BACKEND": "local",
}


@dataclass
class StudioConfig:
    """封裝生成服務與儲存後端的設定值。"""

    secret_key: str
    log_level: str
    gemini_api_key: Optional[str]
    gemini_model: str
    gemini_safety_level: str
    persistence_backend: str
    database_url: str
    local_store_quota_bytes: int
    session_ttl_seconds: Optional[int]
    data_dir: Path

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def local_store_dir(self) -> Path:
        return self.data_dir / "local_store"

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "StudioConfig":
        """從環境變數建構設定，data/settings.json 中的值優先，並確保必要目錄存在。"""

        load_dotenv()
        data_dir = Path(data_dir or os.getenv("OUTFIT_STUDIO_DATA_DIR") or Path.cwd() / "data")
        data_dir.mkdir(parents=True, exist_ok=True)

        settings_file = data_dir / "settings.json"
        if not settings_file.exists():
            settings_file.write_text(
                json.dumps(DEFAULT_SETTINGS, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            logger.info("已創建預設設定檔: %s", settings_file)
        settings = cls._load_settings(settings_file)

        def pick(key: str, default: Optional[str] = None) -> Optional[str]:
            value = settings.get(key)
            if value not in (None, ""):
                return str(value)
            return os.getenv(key, default)

        ttl = pick("SESSION_TTL_SECONDS", str(7 * 24 * 3600))
        return cls(
            secret_key=pick("SECRET_KEY", "dev_secret") or "dev_secret",
            log_level=pick("LOG_LEVEL", "INFO") or "INFO",
            gemini_api_key=pick("GEMINI_API_KEY"),
            gemini_model=pick("GEMINI_MODEL", "gemini-2.5-flash-image") or "gemini-2.5-flash-image",
            gemini_safety_level=pick("GEMINI_SAFETY_LEVEL", "BLOCK_ONLY_HIGH") or "BLOCK_ONLY_HIGH",
            persistence_backend=pick("PERSISTENCE_BACKEND", "local") or "local",
            database_url=pick("DATABASE_URL", f"sqlite:///{data_dir / 'app.db'}") or "sqlite://",
            local_store_quota_bytes=int(pick("LOCAL_STORE_QUOTA_BYTES", str(5 * 1024 * 1024))),
            session_ttl_seconds=int(ttl) if ttl and int(ttl) > 0 else None,
            data_dir=data_dir,
        )

    @staticmethod
    def _load_settings(path: Path) -> Dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("設定檔讀取失敗 %s: %s", path, exc)
            return {}
        return data if isinstance(data, dict) else {}
