from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from dotts_api.db.base import Base


class Profile(Base):
    """User profile; rows are created by the identity system."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)

    plan = Column(String, nullable=False, default="free", server_default="free")  # free | premium

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
