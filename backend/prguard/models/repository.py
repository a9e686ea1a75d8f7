"""Source-control repositories known to the system"""
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base
from ..domain.common.clock import utcnow


class Repository(Base):
    """A repository addressable through the source-control connector."""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False, unique=True, index=True)  # owner/name
    owner_user_id = Column(Integer, nullable=True, index=True)
    default_branch = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
