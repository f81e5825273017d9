from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func
from callcontrol.core.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
