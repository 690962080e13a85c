import json

import pytest

from outfit_studio.config import StudioConfig
from outfit_studio.services.persistence import (
    LocalPersistenceGateway,
    RemotePersistenceGateway,
    create_gateway,
)


def test_load_writes_default_settings_and_reads_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    monkeypatch.delenv("PERSISTENCE_BACKEND", raising=False)

    config = StudioConfig.load(tmp_path)

    assert (tmp_path / "settings.json").exists()
    assert config.gemini_api_key == "env-key"
    assert config.persistence_backend == "local"
    assert config.session_ttl_seconds == 7 * 24 * 3600


def test_settings_file_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_MODEL", "env-model")
    (tmp_path / "settings.json").write_text(
        json.dumps({"GEMINI_MODEL": "file-model", "SESSION_TTL_SECONDS": 0}), encoding="utf-8"
    )

    config = StudioConfig.load(tmp_path)

    assert config.gemini_model == "file-model"
    assert config.session_ttl_seconds is None


def test_gateway_backend_is_selected_once_from_config(make_config):
    assert isinstance(create_gateway(make_config(persistence_backend="local")), LocalPersistenceGateway)
    assert isinstance(
        create_gateway(make_config(persistence_backend="remote", database_url="sqlite://")),
        RemotePersistenceGateway,
    )
    with pytest.raises(ValueError):
        create_gateway(make_config(persistence_backend="cloud"))
