"""SQLAlchemy models for the document vault"""

from .base import Base
from .document import Document
from .user import UserAccount

__all__ = [
    "Base",
    "Document",
    "UserAccount",
]
