from io import BytesIO

import pytest

from conftest import make_image_bytes
from outfit_studio.app import build_components, create_app
from outfit_studio.common.errors import MissingCredentialError


@pytest.fixture
def app(make_config, generation_client):
    config = make_config()
    return create_app(config, components=build_components(config, generation_client=generation_client))


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client):
    return client.post(
        "/api/auth/register",
        json={"username": "sam", "email": "sam@example.com", "password": "pw"},
    )


def _garment_upload(name="garment.jpg", mime_type="image/jpeg"):
    return (BytesIO(make_image_bytes("JPEG")), name, mime_type)


def test_missing_credential_fails_at_startup(make_config):
    with pytest.raises(MissingCredentialError):
        create_app(make_config(gemini_api_key=None))


def test_modes_endpoint(client):
    data = client.get("/api/modes").get_json()
    assert [m["mode"] for m in data["modes"]] == ["ai-model", "custom-model", "flat-lay"]


def test_register_login_logout_flow(client):
    assert _register(client).status_code == 201
    assert client.get("/api/auth/session").get_json()["account"]["username"] == "sam"

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/session").get_json()["account"] is None

    resp = client.post("/api/auth/login", json={"identifier": "sam@example.com", "password": "pw"})
    assert resp.status_code == 200


def test_duplicate_registration_is_conflict(client):
    _register(client)
    resp = _register(client)
    assert resp.status_code == 409
    assert resp.get_json()["type"] == "ConflictError"


def test_bad_login_is_unauthorized(client):
    resp = client.post("/api/auth/login", json={"identifier": "ghost@example.com", "password": "x"})
    assert resp.status_code == 401
    assert client.get("/api/auth/session").get_json()["account"] is None


def test_generate_requires_session(client):
    resp = client.post("/api/generate", data={"mode": "flat-lay"})
    assert resp.status_code == 401


def test_generate_saves_project_and_lists_it(client, fake_genai):
    _register(client)
    resp = client.post(
        "/api/generate",
        data={
            "mode": "ai-model",
            "garment_description": "navy wool blazer",
            "model_spec": "athletic male model",
            "pose": "standing, hands in pockets",
            "garment_image": _garment_upload(),
        },
        content_type="multipart/form-data",
    )

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["image_url"].startswith("data:image/png;base64,")
    assert body["saved"] is True
    assert len(fake_genai.models.calls) == 1

    projects = client.get("/api/projects").get_json()["projects"]
    assert [p["mode"] for p in projects] == ["ai-model"]
    assert projects[0]["garment_description"] == "navy wool blazer"


def test_generate_validation_error_is_bad_request(client, fake_genai):
    _register(client)
    resp = client.post(
        "/api/generate",
        data={"mode": "custom-model", "garment_description": "scarf", "garment_image": _garment_upload()},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert resp.get_json()["type"] == "ValidationError"
    assert fake_genai.models.calls == []


def test_unsupported_upload_is_reported(client):
    _register(client)
    resp = client.post(
        "/api/generate",
        data={
            "mode": "flat-lay",
            "garment_description": "scarf",
            "garment_image": (BytesIO(b"garbage"), "scarf.avif", "image/avif"),
        },
        content_type="multipart/form-data",
    )
    assert resp.status_code == 415
    assert "image/avif" in resp.get_json()["error"]


def test_delete_project(client):
    _register(client)
    client.post(
        "/api/generate",
        data={"mode": "flat-lay", "garment_description": "tee", "garment_image": _garment_upload()},
        content_type="multipart/form-data",
    )
    [project] = client.get("/api/projects").get_json()["projects"]

    assert client.delete(f"/api/projects/{project['id']}").status_code == 200
    assert client.get("/api/projects").get_json()["projects"] == []
    assert client.delete(f"/api/projects/{project['id']}").status_code == 404


def test_sessions_are_bound_to_each_browser(app, client):
    _register(client)
    other = app.test_client()

    assert other.get("/api/auth/session").get_json()["account"] is None
    assert other.get("/api/projects").status_code == 401
    assert other.post("/api/auth/logout").status_code == 200

    assert client.get("/api/auth/session").get_json()["account"]["username"] == "sam"
