import base64
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import pytest
from PIL import Image

from outfit_studio.config import StudioConfig
from outfit_studio.services.generation_client import GenerationClient
from outfit_studio.services.persistence import LocalPersistenceGateway, RemotePersistenceGateway

PNG_RESULT = b"\x89PNG\r\n\x1a\nfake-generated-image"


def make_image_bytes(fmt: str = "PNG", mode: str = "RGB", size=(8, 8), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    with Image.new(mode, size, color) as img:
        img.save(buffer, format=fmt)
    return buffer.getvalue()


def image_response(*parts):
    """組出與 SDK 回應相同形狀的物件：candidates -> content -> parts。"""

    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def inline_part(data: bytes = PNG_RESULT, mime_type: str = "image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def text_part(text: str):
    return SimpleNamespace(text=text)


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else image_response(inline_part())
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeGenaiClient:
    def __init__(self, response=None, error=None):
        self.models = FakeModels(response=response, error=error)


@pytest.fixture
def fake_genai():
    return FakeGenaiClient()


@pytest.fixture
def generation_client(fake_genai):
    return GenerationClient(api_key=None, client=fake_genai)


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> StudioConfig:
        values = dict(
            secret_key="test",
            log_level="WARNING",
            gemini_api_key="test-key",
            gemini_model="gemini-2.5-flash-image",
            gemini_safety_level="BLOCK_ONLY_HIGH",
            persistence_backend="local",
            database_url="sqlite://",
            local_store_quota_bytes=5 * 1024 * 1024,
            session_ttl_seconds=None,
            data_dir=tmp_path,
        )
        values.update(overrides)
        return StudioConfig(**values)

    return _make


@pytest.fixture(params=["local", "remote"])
def make_gateway(request, tmp_path: Path):
    """每次呼叫都開一個新的 gateway，但共用同一份儲存，用來模擬重新啟動。"""

    opened = []

    def _make(session_ttl_seconds=3600):
        if request.param == "local":
            gateway = LocalPersistenceGateway(tmp_path / "store", session_ttl_seconds=session_ttl_seconds)
        else:
            gateway = RemotePersistenceGateway(
                f"sqlite:///{tmp_path / 'studio.db'}", session_ttl_seconds=session_ttl_seconds
            )
        opened.append(gateway)
        return gateway

    yield _make
    for gateway in opened:
        gateway.close()


@pytest.fixture
def gateway(make_gateway):
    return make_gateway()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
