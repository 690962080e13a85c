"""Account model for studio users."""
from sqlalchemy import Column, DateTime, String

from .base import Base


class AccountRecord(Base):
    """使用者帳號；建立後不再修改。"""
    __tablename__ = "accounts"

    id = Column(String(32), primary_key=True)
    username = Column(String(128), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, doc="建立時間（UTC）")
