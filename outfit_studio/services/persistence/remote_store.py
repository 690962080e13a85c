"""以 SQLAlchemy 關聯式資料庫儲存帳號、session 與作品的後端。"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...common.db.session import create_session_factory, session_scope
from ...common.errors import ConflictError, StorageError
from ...common.models import AccountRecord, AuthSessionRecord, Base, ProjectRecord
from ..generation_types import GenerationMode
from .base import Account, PersistenceGateway, Project, utcnow

logger = logging.getLogger(__name__)

_CONFLICT_MESSAGE = "Username or Email already exists."


def _to_db_time(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class RemotePersistenceGateway(PersistenceGateway):
    """
    帳號操作對應 sign-up / sign-in / sign-out / session fetch：
    - accounts: 使用者名稱與 email 皆為唯一鍵
    - auth_sessions: 以用戶端的 session_key 為主鍵，記錄帳號與到期時間
    - projects: 依 owner_id 篩選、依 created_at 排序
    """

    def __init__(self, database_url: str, session_ttl_seconds: Optional[float] = None) -> None:
        super().__init__(session_ttl_seconds=session_ttl_seconds)
        self._engine, self._sessions = create_session_factory(database_url)
        Base.metadata.create_all(self._engine)

    @contextmanager
    def _transaction(self, conflict_message: Optional[str] = None) -> Iterator[Session]:
        try:
            with session_scope(self._sessions) as session:
                yield session
        except IntegrityError as exc:
            if conflict_message:
                raise ConflictError(conflict_message) from exc
            raise StorageError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("Database error: %s", exc)
            raise StorageError(str(exc)) from exc

    # Accounts -------------------------------------------------------------------

    def _create_account(self, username: str, email: str, password_hash: str) -> Account:
        with self._transaction(conflict_message=_CONFLICT_MESSAGE) as session:
            taken = (
                session.query(AccountRecord.id)
                .filter(or_(AccountRecord.username == username, AccountRecord.email == email))
                .first()
            )
            if taken is not None:
                raise ConflictError(_CONFLICT_MESSAGE)

            row = AccountRecord(
                id=uuid4().hex,
                username=username,
                email=email,
                password_hash=password_hash,
                created_at=_to_db_time(utcnow()),
            )
            session.add(row)
            session.flush()
            return self._to_account(row)

    def _find_credentials(self, identifier: str) -> Optional[Tuple[Account, str]]:
        with self._transaction() as session:
            row = (
                session.query(AccountRecord)
                .filter(
                    or_(
                        AccountRecord.username == identifier,
                        AccountRecord.email == identifier.lower(),
                    )
                )
                .first()
            )
            if row is None:
                return None
            return self._to_account(row), row.password_hash

    # Session --------------------------------------------------------------------

    def _store_session(
        self, session_key: str, account: Account, expires_at: Optional[datetime]
    ) -> None:
        now = _to_db_time(utcnow())
        with self._transaction() as session:
            session.query(AuthSessionRecord).filter(
                or_(
                    AuthSessionRecord.token == session_key,
                    AuthSessionRecord.expires_at <= now,
                )
            ).delete(synchronize_session=False)
            session.add(
                AuthSessionRecord(
                    token=session_key,
                    account_id=account.id,
                    created_at=now,
                    expires_at=_to_db_time(expires_at) if expires_at else None,
                )
            )

    def _clear_session(self, session_key: str) -> None:
        with self._transaction() as session:
            session.query(AuthSessionRecord).filter(
                AuthSessionRecord.token == session_key
            ).delete(synchronize_session=False)

    def _load_session(
        self, session_key: str, now: datetime
    ) -> Optional[Tuple[Account, Optional[datetime]]]:
        with self._transaction() as session:
            row = session.get(AuthSessionRecord, session_key)
            if row is None:
                return None
            account_row = session.get(AccountRecord, row.account_id)
            expires_at = _from_db_time(row.expires_at) if row.expires_at else None
            expired = expires_at is not None and expires_at <= now
            if account_row is None or expired:
                session.delete(row)
                logger.info("Remote session ended (expired=%s)", expired)
                return None
            return self._to_account(account_row), expires_at

    # Projects -------------------------------------------------------------------

    def _insert_project(
        self, owner_id: str, image_url: str, garment_description: str, mode: GenerationMode
    ) -> Project:
        with self._transaction() as session:
            row = ProjectRecord(
                id=uuid4().hex,
                owner_id=owner_id,
                image_url=image_url,
                garment_description=garment_description,
                mode=mode.value,
                created_at=_to_db_time(utcnow()),
            )
            session.add(row)
            session.flush()
            return self._to_project(row)

    def _select_projects(self, owner_id: str) -> List[Project]:
        with self._transaction() as session:
            rows = (
                session.query(ProjectRecord)
                .filter(ProjectRecord.owner_id == owner_id)
                .order_by(ProjectRecord.created_at.desc(), ProjectRecord.seq.desc())
                .all()
            )
            return [self._to_project(row) for row in rows]

    def _delete_project(self, project_id: str) -> None:
        with self._transaction() as session:
            row = session.query(ProjectRecord).filter(ProjectRecord.id == project_id).first()
            if row is not None:
                session.delete(row)

    @staticmethod
    def _to_account(row: AccountRecord) -> Account:
        return Account(
            id=row.id,
            username=row.username,
            email=row.email,
            created_at=_from_db_time(row.created_at),
        )

    @staticmethod
    def _to_project(row: ProjectRecord) -> Project:
        try:
            mode = GenerationMode.parse(row.mode)
        except ValueError as exc:
            raise StorageError(f"Invalid project mode in database: {row.mode!r}") from exc
        return Project(
            id=row.id,
            owner_id=row.owner_id,
            image_url=row.image_url,
            garment_description=row.garment_description,
            mode=mode,
            created_at=_from_db_time(row.created_at),
        )
