"""Outfit Studio Flask 應用：服飾照片轉模特兒照、換穿與平拍。"""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask

from .common.services.logging import configure_logging
from .config import StudioConfig
from .routes import api
from .services import (
    GenerationClient,
    ImageNormalizer,
    PromptAssembler,
    StudioService,
    create_gateway,
)


def build_components(config: StudioConfig, generation_client: Optional[Any] = None) -> Dict[str, Any]:
    """組裝各服務；缺少 GEMINI_API_KEY 時於此拋出 MissingCredentialError。"""

    client = generation_client or GenerationClient(
        api_key=config.gemini_api_key,
        model_name=config.gemini_model,
        safety_level=config.gemini_safety_level,
    )
    assembler = PromptAssembler(ImageNormalizer())
    gateway = create_gateway(config)
    return {
        "assembler": assembler,
        "generation_client": client,
        "gateway": gateway,
        "studio_service": StudioService(assembler, client, gateway),
    }


def create_app(
    config: Optional[StudioConfig] = None,
    components: Optional[Dict[str, Any]] = None,
) -> Flask:
    config = config or StudioConfig.load()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["OUTFIT_STUDIO_CONFIG"] = config

    components = components or build_components(config)
    app.extensions["outfit_studio_components"] = components

    app.register_blueprint(api.api_bp)
    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=6055, debug=False)


if __name__ == "__main__":
    main()
