"""Base SQLAlchemy declarative base for all models"""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for Python-side column defaults."""
    return datetime.now(timezone.utc)


Base = declarative_base()
