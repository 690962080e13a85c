"""提供前端使用的 JSON API 路由。"""

from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request, session

from ..common.errors import AuthError, StudioError, ValidationError
from ..services.generation_types import GarmentForm, GenerationMode, RawImage
from ..services.prompt_assembler import PromptAssembler


api_bp = Blueprint("outfit_studio_api", __name__, url_prefix="/api")

SESSION_KEY_COOKIE = "outfit_studio_session_key"


def _components() -> Dict[str, Any]:
    return current_app.extensions["outfit_studio_components"]


def _session_key(create: bool = False) -> Optional[str]:
    """每個瀏覽器以簽章 cookie 保存自己的 session_key。"""

    key = session.get(SESSION_KEY_COOKIE)
    if not key and create:
        key = secrets.token_urlsafe(32)
        session[SESSION_KEY_COOKIE] = key
    return key


def _current_account():
    key = _session_key()
    if not key:
        return None
    return _components()["gateway"].current_session(key)


def _require_account():
    account = _current_account()
    if account is None:
        raise AuthError("Please log in first.")
    return account


def _uploaded_image(field: str):
    uploaded = request.files.get(field)
    if uploaded is None or not (uploaded.filename or "").strip():
        return None
    return RawImage.from_file_storage(uploaded)


@api_bp.errorhandler(StudioError)
def handle_studio_error(exc: StudioError):
    return jsonify(exc.to_dict()), exc.http_status


@api_bp.get("/modes")
def list_modes():
    return jsonify({"modes": PromptAssembler.mode_notes()})


@api_bp.post("/auth/register")
def register():
    payload = request.get_json(silent=True) or {}
    account = _components()["gateway"].register(
        str(payload.get("username", "")),
        str(payload.get("email", "")),
        str(payload.get("password", "")),
        session_key=_session_key(create=True),
    )
    return jsonify({"account": account.to_dict()}), 201


@api_bp.post("/auth/login")
def login():
    payload = request.get_json(silent=True) or {}
    account = _components()["gateway"].login(
        str(payload.get("identifier", "")),
        str(payload.get("password", "")),
        session_key=_session_key(create=True),
    )
    return jsonify({"account": account.to_dict()})


@api_bp.post("/auth/logout")
def logout():
    key = session.pop(SESSION_KEY_COOKIE, None)
    if key:
        _components()["gateway"].logout(key)
    return jsonify({"status": "ok"})


@api_bp.get("/auth/session")
def current_session():
    account = _current_account()
    return jsonify({"account": account.to_dict() if account else None})


@api_bp.post("/generate")
def generate():
    account = _require_account()
    try:
        mode = GenerationMode.parse(request.form.get("mode", GenerationMode.AI_MODEL.value))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    form = GarmentForm(
        mode=mode,
        garment_description=request.form.get("garment_description", ""),
        model_spec=request.form.get("model_spec", ""),
        pose=request.form.get("pose", ""),
        garment_image=_uploaded_image("garment_image"),
        reference_model_image=_uploaded_image("model_image"),
    )
    outcome = _components()["studio_service"].generate(account, form)
    return jsonify(outcome.to_dict())


@api_bp.get("/projects")
def list_projects():
    account = _require_account()
    projects = _components()["gateway"].list_projects(account.id)
    return jsonify({"projects": [p.to_dict() for p in projects]})


@api_bp.delete("/projects/<project_id>")
def delete_project(project_id: str):
    account = _require_account()
    gateway = _components()["gateway"]
    if not any(p.id == project_id for p in gateway.list_projects(account.id)):
        return jsonify({"error": "Project not found.", "type": "NotFound"}), 404
    gateway.delete_project(project_id)
    return jsonify({"status": "ok"})
