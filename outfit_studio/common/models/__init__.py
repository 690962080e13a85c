from .account import AccountRecord
from .auth_session import AuthSessionRecord
from .base import Base
from .project import ProjectRecord

__all__ = ["AccountRecord", "AuthSessionRecord", "Base", "ProjectRecord"]
