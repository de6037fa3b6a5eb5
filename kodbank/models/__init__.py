"""SQLAlchemy ORM models."""

from kodbank.models.base import Base
from kodbank.models.token import UserToken
from kodbank.models.user import User

__all__ = ["Base", "User", "UserToken"]
