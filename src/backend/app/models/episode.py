"""
Podcast episode model
Only the fields the CPD calculation needs
"""
from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime

from .base import Base


class Episode(Base):
    """Podcast episode (content a quiz belongs to)"""
    __tablename__ = "episodes"

    id = Column(String(36), primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    duration = Column(Integer, nullable=True)  # seconds, NULL if unknown
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Episode(id='{self.id}' title='{self.title}' duration={self.duration})>"
