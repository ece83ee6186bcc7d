from authcore.models.session import AuthSession, SessionActivity
from authcore.models.user import User

__all__ = [
    "AuthSession",
    "SessionActivity",
    "User",
]
