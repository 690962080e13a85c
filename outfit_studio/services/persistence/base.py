"""帳號與作品紀錄的儲存介面。

兩種後端（本機 JSON、遠端資料庫）共用此基底類別的驗證、登入狀態管理與通知邏輯，
子類別只負責實際的讀寫。
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from ...common.errors import AuthError, StudioError, ValidationError
from ...common.services.logging import log_event
from ..generation_types import GenerationMode
from ..session_events import SessionListener, SessionObservable, Subscription

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "default"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Account:
    id: str
    username: str
    email: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Project:
    id: str
    owner_id: str
    image_url: str
    garment_description: str
    mode: GenerationMode
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "image_url": self.image_url,
            "garment_description": self.garment_description,
            "mode": self.mode.value,
            "created_at": self.created_at.isoformat(),
        }


class PersistenceGateway(ABC):
    """register/login/logout/current_session/on_session_change 與作品 CRUD。

    登入狀態以 session_key 區分；每個用戶端（瀏覽器 cookie）各自一組，
    單機使用時沿用 DEFAULT_SESSION_KEY。
    """

    def __init__(self, session_ttl_seconds: Optional[float] = None) -> None:
        self._events: Dict[str, SessionObservable] = {}
        self._active: Dict[str, Account] = {}
        self._expires: Dict[str, datetime] = {}
        self._expiry_timers: Dict[str, threading.Timer] = {}
        self._session_lock = threading.RLock()
        self._session_ttl = (
            timedelta(seconds=session_ttl_seconds) if session_ttl_seconds else None
        )

    # Accounts -------------------------------------------------------------------

    def register(
        self, username: str, email: str, password: str, session_key: str = DEFAULT_SESSION_KEY
    ) -> Account:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            raise ValidationError("All fields are required.")

        account = self._create_account(username, email, generate_password_hash(password))
        log_event("info", "account.registered", account_id=account.id)
        self._start_session(session_key, account)
        return account

    def login(
        self, identifier: str, password: str, session_key: str = DEFAULT_SESSION_KEY
    ) -> Account:
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise ValidationError("Username and password required.")

        found = self._find_credentials(identifier)
        if found is None or not check_password_hash(found[1], password):
            log_event("warning", "account.login_failed")
            raise AuthError("Invalid credentials.")
        account = found[0]
        self._start_session(session_key, account)
        return account

    def logout(self, session_key: str = DEFAULT_SESSION_KEY) -> None:
        with self._session_lock:
            self._clear_session(session_key)
            self._set_active(session_key, None)

    def current_session(self, session_key: str = DEFAULT_SESSION_KEY) -> Optional[Account]:
        """讀取儲存的登入狀態；過期或被外部移除時會發出通知。"""

        with self._session_lock:
            loaded = self._load_session(session_key, utcnow())
            account, expires_at = loaded if loaded else (None, None)
            self._set_active(session_key, account, expires_at)
            return account

    def on_session_change(
        self, callback: SessionListener, session_key: str = DEFAULT_SESSION_KEY
    ) -> Subscription:
        with self._session_lock:
            subscription = self._events.setdefault(session_key, SessionObservable()).subscribe(
                callback
            )
            self._schedule_expiry(session_key)
        return subscription

    def close(self) -> None:
        """停止所有到期計時器。"""

        with self._session_lock:
            for timer in self._expiry_timers.values():
                timer.cancel()
            self._expiry_timers.clear()

    # Projects -------------------------------------------------------------------

    def save_project(
        self,
        owner_id: str,
        image_url: str,
        garment_description: str,
        mode: GenerationMode,
    ) -> Project:
        if not owner_id:
            raise ValidationError("A project must have an owner.")
        try:
            mode = GenerationMode.parse(mode)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        project = self._insert_project(owner_id, image_url, garment_description, mode)
        log_event("info", "project.saved", project_id=project.id, owner_id=owner_id, mode=mode.value)
        return project

    def list_projects(self, owner_id: str) -> List[Project]:
        """依 created_at 由新到舊排序；時間相同時較晚寫入者在前。"""

        return self._select_projects(owner_id)

    def delete_project(self, project_id: str) -> None:
        self._delete_project(project_id)
        log_event("info", "project.deleted", project_id=project_id)

    # Session bookkeeping ----------------------------------------------------------

    def _start_session(self, session_key: str, account: Account) -> None:
        expires_at = utcnow() + self._session_ttl if self._session_ttl else None
        with self._session_lock:
            self._store_session(session_key, account, expires_at)
            self._set_active(session_key, account, expires_at)

    def _set_active(
        self,
        session_key: str,
        account: Optional[Account],
        expires_at: Optional[datetime] = None,
    ) -> None:
        previous = self._active.get(session_key)
        previous_id = previous.id if previous else None
        current_id = account.id if account else None

        if account is None:
            self._active.pop(session_key, None)
            self._expires.pop(session_key, None)
        else:
            self._active[session_key] = account
            if expires_at is not None:
                self._expires[session_key] = expires_at
            else:
                self._expires.pop(session_key, None)
        self._schedule_expiry(session_key)

        if previous_id != current_id:
            log_event("info", "session.changed", account_id=current_id)
            observable = self._events.get(session_key)
            if observable is not None:
                observable.publish(account)

    def _schedule_expiry(self, session_key: str) -> None:
        # 只有在有訂閱者時才需要主動推送到期通知
        timer = self._expiry_timers.pop(session_key, None)
        if timer is not None:
            timer.cancel()

        expires_at = self._expires.get(session_key)
        observable = self._events.get(session_key)
        if expires_at is None or observable is None or not observable.has_listeners():
            return

        delay = max((expires_at - utcnow()).total_seconds(), 0.0)
        timer = threading.Timer(delay, self._expire, args=(session_key,))
        timer.daemon = True
        self._expiry_timers[session_key] = timer
        timer.start()

    def _expire(self, session_key: str) -> None:
        try:
            self.current_session(session_key)
        except StudioError as exc:
            logger.warning("Session expiry check failed: %s", exc)

    # Backend primitives -----------------------------------------------------------

    @abstractmethod
    def _create_account(self, username: str, email: str, password_hash: str) -> Account:
        """新增帳號；使用者名稱或 email 已存在時拋出 ConflictError。"""

    @abstractmethod
    def _find_credentials(self, identifier: str) -> Optional[Tuple[Account, str]]:
        """以使用者名稱或 email 查詢，回傳 (Account, password_hash)。"""

    @abstractmethod
    def _store_session(
        self, session_key: str, account: Account, expires_at: Optional[datetime]
    ) -> None:
        ...

    @abstractmethod
    def _clear_session(self, session_key: str) -> None:
        ...

    @abstractmethod
    def _load_session(
        self, session_key: str, now: datetime
    ) -> Optional[Tuple[Account, Optional[datetime]]]:
        """回傳 (Account, expires_at)；過期或不存在時清除並回傳 None。"""

    @abstractmethod
    def _insert_project(
        self, owner_id: str, image_url: str, garment_description: str, mode: GenerationMode
    ) -> Project:
        ...

    @abstractmethod
    def _select_projects(self, owner_id: str) -> List[Project]:
        ...

    @abstractmethod
    def _delete_project(self, project_id: str) -> None:
        ...
