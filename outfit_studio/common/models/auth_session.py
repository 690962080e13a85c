from sqlalchemy import Column, DateTime, ForeignKey, String

from .base import Base


class AuthSessionRecord(Base):
    """登入 session；token 為隨機字串，expires_at 為空表示不過期。"""
    __tablename__ = "auth_sessions"

    token = Column(String(64), primary_key=True)
    account_id = Column(String(32), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=True)
