"""以本機 JSON 檔案儲存帳號、作品與登入狀態的後端。"""

from __future__ import annotations

import errno
import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ...common.errors import CapacityError, ConflictError, StorageError
from ..generation_types import GenerationMode
from .base import Account, PersistenceGateway, Project, utcnow

logger = logging.getLogger(__name__)

USERS_KEY = "outfit_ai_users"
PROJECTS_KEY = "outfit_ai_projects"
CURRENT_USER_KEY = "outfit_ai_current_user"

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class LocalPersistenceGateway(PersistenceGateway):
    """三個 JSON 槽位：使用者清單、作品清單、各 session_key 的登入帳號。"""

    def __init__(
        self,
        data_dir: Path,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        session_ttl_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(session_ttl_seconds=session_ttl_seconds)
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._quota_bytes = quota_bytes
        self._lock = threading.RLock()

    # Accounts -------------------------------------------------------------------

    def _create_account(self, username: str, email: str, password_hash: str) -> Account:
        with self._lock:
            users = self._read_records(USERS_KEY)
            if any(u.get("username") == username or u.get("email") == email for u in users):
                raise ConflictError("Username or Email already exists.")
            record = {
                "id": uuid4().hex,
                "username": username,
                "email": email,
                "password_hash": password_hash,
                "created_at": utcnow().isoformat(),
            }
            users.append(record)
            self._write_slot(USERS_KEY, users)
        return self._to_account(record)

    def _find_credentials(self, identifier: str) -> Optional[Tuple[Account, str]]:
        email = identifier.lower()
        for record in self._read_records(USERS_KEY):
            if record.get("username") == identifier or record.get("email") == email:
                return self._to_account(record), str(record.get("password_hash", ""))
        return None

    # Session --------------------------------------------------------------------

    def _store_session(
        self, session_key: str, account: Account, expires_at: Optional[datetime]
    ) -> None:
        now = utcnow()
        with self._lock:
            pointers = {
                key: pointer
                for key, pointer in self._read_pointers().items()
                if not self._is_expired(pointer, now)
            }
            pointers[session_key] = {
                "account_id": account.id,
                "expires_at": expires_at.isoformat() if expires_at else None,
            }
            self._write_slot(CURRENT_USER_KEY, pointers)

    def _clear_session(self, session_key: str) -> None:
        with self._lock:
            pointers = self._read_pointers()
            if pointers.pop(session_key, None) is None:
                return
            if pointers:
                self._write_slot(CURRENT_USER_KEY, pointers)
                return
            try:
                self._slot_path(CURRENT_USER_KEY).unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Failed to clear session: {exc}") from exc

    def _load_session(
        self, session_key: str, now: datetime
    ) -> Optional[Tuple[Account, Optional[datetime]]]:
        with self._lock:
            pointer = self._read_pointers().get(session_key)
            if not isinstance(pointer, dict):
                return None

            if self._is_expired(pointer, now):
                logger.info("Local session expired for %s", pointer.get("account_id"))
                self._clear_session(session_key)
                return None

            for record in self._read_records(USERS_KEY):
                if record.get("id") == pointer.get("account_id"):
                    return self._to_account(record), self._parse_time(pointer.get("expires_at"))
            self._clear_session(session_key)
            return None

    def _read_pointers(self) -> Dict[str, Any]:
        return self._read_slot(CURRENT_USER_KEY, {})

    @classmethod
    def _is_expired(cls, pointer: Any, now: datetime) -> bool:
        if not isinstance(pointer, dict):
            return True
        expires_at = cls._parse_time(pointer.get("expires_at"))
        return expires_at is not None and expires_at <= now

    @staticmethod
    def _parse_time(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Local store has an invalid timestamp: {value!r}") from exc

    # Projects -------------------------------------------------------------------

    def _insert_project(
        self, owner_id: str, image_url: str, garment_description: str, mode: GenerationMode
    ) -> Project:
        record = {
            "id": uuid4().hex,
            "owner_id": owner_id,
            "image_url": image_url,
            "garment_description": garment_description,
            "mode": mode.value,
            "created_at": utcnow().isoformat(),
        }
        with self._lock:
            projects = self._read_records(PROJECTS_KEY)
            projects.append(record)
            self._write_slot(PROJECTS_KEY, projects)
        return self._to_project(record)

    def _select_projects(self, owner_id: str) -> List[Project]:
        owned = [
            self._to_project(r)
            for r in reversed(self._read_records(PROJECTS_KEY))
            if r.get("owner_id") == owner_id
        ]
        # sort 為穩定排序，同時間的紀錄維持「較晚寫入在前」
        owned.sort(key=lambda p: p.created_at, reverse=True)
        return owned

    def _delete_project(self, project_id: str) -> None:
        with self._lock:
            projects = self._read_records(PROJECTS_KEY)
            remaining = [p for p in projects if p.get("id") != project_id]
            if len(remaining) != len(projects):
                self._write_slot(PROJECTS_KEY, remaining)

    # Slot I/O ---------------------------------------------------------------------

    def _slot_path(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def _read_slot(self, key: str, default: Any) -> Any:
        path = self._slot_path(key)
        try:
            if not path.exists():
                return default
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
        if not text.strip():
            return default
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Local store slot {key} is corrupted.") from exc
        if default is not None and not isinstance(value, type(default)):
            raise StorageError(f"Local store slot {key} is corrupted.")
        return value

    def _read_records(self, key: str) -> List[Dict[str, Any]]:
        records = self._read_slot(key, [])
        if not all(isinstance(record, dict) for record in records):
            raise StorageError(f"Local store slot {key} is corrupted.")
        return records

    def _write_slot(self, key: str, value: Any) -> None:
        content = json.dumps(value, ensure_ascii=False)
        path = self._slot_path(key)

        with self._lock:
            tmp_path = path.with_suffix(".tmp")
            try:
                used = sum(
                    self._slot_path(other).stat().st_size
                    for other in (USERS_KEY, PROJECTS_KEY, CURRENT_USER_KEY)
                    if other != key and self._slot_path(other).exists()
                )
                if used + len(content.encode("utf-8")) > self._quota_bytes:
                    raise CapacityError("Storage full. Delete some old images to save new ones.")

                tmp_path.write_text(content, encoding="utf-8")
                os.replace(tmp_path, path)
            except OSError as exc:
                tmp_path.unlink(missing_ok=True)
                if exc.errno in _CAPACITY_ERRNOS:
                    raise CapacityError(
                        "Storage full. Delete some old images to save new ones."
                    ) from exc
                raise StorageError(f"Failed to write {key}: {exc}") from exc

    @staticmethod
    def _to_account(record: Dict[str, Any]) -> Account:
        try:
            return Account(
                id=str(record["id"]),
                username=str(record["username"]),
                email=str(record["email"]),
                created_at=datetime.fromisoformat(record["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Invalid account record in local store: {exc}") from exc

    @staticmethod
    def _to_project(record: Dict[str, Any]) -> Project:
        try:
            return Project(
                id=str(record["id"]),
                owner_id=str(record["owner_id"]),
                image_url=str(record["image_url"]),
                garment_description=str(record.get("garment_description", "")),
                mode=GenerationMode.parse(record.get("mode")),
                created_at=datetime.fromisoformat(record["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Invalid project record in local store: {exc}") from exc
