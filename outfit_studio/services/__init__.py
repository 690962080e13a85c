"""Outfit Studio 服務模組入口。"""

from .generation_client import GenerationClient
from .image_normalizer import ImageNormalizer
from .persistence import (
    LocalPersistenceGateway,
    PersistenceGateway,
    RemotePersistenceGateway,
    create_gateway,
)
from .prompt_assembler import PromptAssembler
from .studio_service import StudioService

__all__ = [
    "GenerationClient",
    "ImageNormalizer",
    "LocalPersistenceGateway",
    "PersistenceGateway",
    "PromptAssembler",
    "RemotePersistenceGateway",
    "StudioService",
    "create_gateway",
]
