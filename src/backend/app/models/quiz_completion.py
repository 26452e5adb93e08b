"""
Quiz completion model
One row per qualifying (score-improving) submission; never updated
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Index
from datetime import datetime

from .base import Base


class QuizCompletion(Base):
    """
    Graded quiz result

    answers holds the final attempt per question:
    [{"question_id": ..., "selected_answers": [...], "is_correct": bool, "points": int}]
    """
    __tablename__ = "quiz_completions"
    __table_args__ = (
        Index("idx_completions_user_quiz", "user_id", "quiz_id"),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    quiz_id = Column(String(36), nullable=False, index=True)
    content_id = Column(String(36), nullable=True, index=True)  # related episode
    score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)  # 0-100
    time_spent = Column(Integer, default=0)  # seconds
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    answers = Column(JSON, nullable=False, default=list)
    passed = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=1)  # persisted-completion number for this quiz

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quiz_id": self.quiz_id,
            "content_id": self.content_id,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "time_spent": self.time_spent,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "answers": self.answers or [],
            "passed": self.passed,
            "attempts": self.attempts,
        }

    def __repr__(self):
        return f"<QuizCompletion(id='{self.id}' user='{self.user_id}' quiz='{self.quiz_id}' pct={self.percentage} passed={self.passed})>"
