"""
Quiz definition models
Quizzes, their questions and answer options (managed by the admin console)
"""
from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class Quiz(Base):
    """Quiz attached to an episode"""
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    content_id = Column(String(36), ForeignKey("episodes.id"), nullable=True, index=True)  # related episode
    pass_percentage = Column(Integer, nullable=True)  # NULL -> QUIZ_DEFAULT_PASS_PERCENTAGE

    # Continuation overrides, NULL -> environment defaults
    max_attempts = Column(Integer, nullable=True)
    cooldown_hours = Column(Float, nullable=True)
    reset_days = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # relationships
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.sort_order",
        cascade="all, delete-orphan"
    )
    episode = relationship("Episode")

    def __repr__(self):
        return f"<Quiz(id='{self.id}' title='{self.title}')>"


class QuizQuestion(Base):
    """Multiple-choice question"""
    __tablename__ = "quiz_questions"

    id = Column(String(36), primary_key=True, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    rationale = Column(Text, nullable=True)  # explanation shown after answering
    learning_outcome = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0)

    # relationships
    quiz = relationship("Quiz", back_populates="questions")
    answers = relationship("QuizAnswerOption", back_populates="question", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<QuizQuestion(id='{self.id}' quiz='{self.quiz_id}' text='{self.question_text[:30]}...')>"


class QuizAnswerOption(Base):
    """Answer option; a question may have several correct ones"""
    __tablename__ = "quiz_answer_options"

    id = Column(String(36), primary_key=True, index=True)
    question_id = Column(String(36), ForeignKey("quiz_questions.id"), nullable=False, index=True)
    answer_letter = Column(String(2), nullable=False)  # A, B, C ...
    answer_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)

    # relationships
    question = relationship("QuizQuestion", back_populates="answers")

    def __repr__(self):
        return f"<QuizAnswerOption(id='{self.id}' letter='{self.answer_letter}' correct={self.is_correct})>"
