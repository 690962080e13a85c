"""登入狀態變更的訂閱機制。"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[object]], None]


class Subscription:
    """on_session_change 回傳的取消訂閱控制代碼。"""

    def __init__(self, observable: "SessionObservable", token: str) -> None:
        self._observable = observable
        self._token = token

    @property
    def active(self) -> bool:
        return self._observable.has_listener(self._token)

    def unsubscribe(self) -> None:
        self._observable.remove(self._token)


class SessionObservable:
    """以整體替換的方式通知目前的 Account（或 None）。"""

    def __init__(self) -> None:
        self._listeners: Dict[str, SessionListener] = {}
        self._lock = threading.Lock()

    def subscribe(self, callback: SessionListener) -> Subscription:
        token = uuid4().hex
        with self._lock:
            self._listeners[token] = callback
        return Subscription(self, token)

    def remove(self, token: str) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def has_listener(self, token: str) -> bool:
        with self._lock:
            return token in self._listeners

    def has_listeners(self) -> bool:
        with self._lock:
            return bool(self._listeners)

    def publish(self, account: Optional[object]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(account)
            except Exception:
                logger.exception("Session listener failed")
