"""Generated project history."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from .base import Base


class ProjectRecord(Base):
    """每次成功生成的作品紀錄。"""
    __tablename__ = "projects"

    seq = Column(Integer, primary_key=True, autoincrement=True, doc="寫入順序")
    id = Column(String(32), nullable=False, unique=True, index=True)
    owner_id = Column(String(32), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    garment_description = Column(Text, nullable=False, default="")
    mode = Column(String(32), nullable=False)
    created_at = Column(DateTime, nullable=False, index=True, doc="建立時間（UTC）")
