"""串接正規化、提示組裝、生成與作品儲存的流程。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..common.errors import StudioError
from ..common.services.logging import log_event
from .generation_client import GenerationClient
from .generation_types import GarmentForm
from .persistence import Account, PersistenceGateway, Project
from .prompt_assembler import PromptAssembler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOutcome:
    image_url: str
    project: Optional[Project] = None
    save_error: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.project is not None

    def to_dict(self) -> dict:
        return {
            "image_url": self.image_url,
            "project": self.project.to_dict() if self.project else None,
            "saved": self.saved,
            "save_error": self.save_error,
        }


class StudioService:
    """normalize → assemble → generate → 儲存，各階段依序執行。"""

    def __init__(
        self,
        assembler: PromptAssembler,
        client: GenerationClient,
        gateway: PersistenceGateway,
    ) -> None:
        self._assembler = assembler
        self._client = client
        self._gateway = gateway

    def generate(self, account: Account, form: GarmentForm) -> GenerationOutcome:
        request = self._assembler.build_request(form)
        parts = self._assembler.assemble(request)
        log_event("info", "studio.generate", account_id=account.id, mode=request.mode.value)

        image_url = self._client.generate(parts, self._assembler.system_instruction)

        # 圖片已生成，儲存失敗只記錄警告並回報給呼叫端
        try:
            project = self._gateway.save_project(
                account.id, image_url, request.garment_description, request.mode
            )
        except StudioError as exc:
            logger.warning("Failed to save to history: %s", exc)
            log_event("warning", "studio.save_failed", account_id=account.id, error=str(exc))
            return GenerationOutcome(image_url=image_url, save_error=str(exc))
        return GenerationOutcome(image_url=image_url, project=project)
