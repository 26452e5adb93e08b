"""
Quiz continuation limits
Attempt budget and cooldown state per (user, quiz)
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, UniqueConstraint
from datetime import datetime

from .base import Base


class QuizContinuationLimit(Base):
    """Attempt counter, cooldown expiry and reset window for one user on one quiz"""
    __tablename__ = "quiz_continuation_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="uq_continuation_user_quiz"),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    quiz_id = Column(String(36), nullable=False, index=True)
    attempts_used = Column(Integer, nullable=False, default=0)  # 0..max_attempts
    last_attempt_at = Column(DateTime, nullable=True)
    last_attempt_passed = Column(Boolean, nullable=True)
    blocked_until = Column(DateTime, nullable=True)  # cooldown expiry after a failed attempt
    reset_at = Column(DateTime, nullable=False)  # counter returns to zero after this
    custom_max_attempts = Column(Integer, nullable=True)  # per-user override
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<QuizContinuationLimit(user='{self.user_id}' quiz='{self.quiz_id}' used={self.attempts_used} reset_at={self.reset_at})>"
