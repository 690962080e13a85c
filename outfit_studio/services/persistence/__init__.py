"""帳號與作品紀錄的儲存後端，於組裝時擇一使用。"""

from __future__ import annotations

from .base import DEFAULT_SESSION_KEY, Account, PersistenceGateway, Project
from .local_store import LocalPersistenceGateway
from .remote_store import RemotePersistenceGateway

BACKENDS = ("local", "remote")


def create_gateway(config) -> PersistenceGateway:
    """依設定的 PERSISTENCE_BACKEND 建立唯一的 gateway。"""

    backend = (config.persistence_backend or "local").strip().lower()
    if backend == "local":
        return LocalPersistenceGateway(
            config.local_store_dir,
            quota_bytes=config.local_store_quota_bytes,
            session_ttl_seconds=config.session_ttl_seconds,
        )
    if backend == "remote":
        return RemotePersistenceGateway(
            config.database_url,
            session_ttl_seconds=config.session_ttl_seconds,
        )
    raise ValueError(f"Unknown PERSISTENCE_BACKEND {backend!r}; expected one of {BACKENDS}")


__all__ = [
    "Account",
    "DEFAULT_SESSION_KEY",
    "LocalPersistenceGateway",
    "PersistenceGateway",
    "Project",
    "RemotePersistenceGateway",
    "create_gateway",
]
