"""
Models package
Export all database models
"""
import logging

from .base import Base
from .episode import Episode
from .quiz import Quiz, QuizQuestion, QuizAnswerOption
from .quiz_completion import QuizCompletion
from .user_progress import UserProgress
from .continuation_limit import QuizContinuationLimit

logger = logging.getLogger(__name__)

__all__ = [
    "Base",
    "Episode",
    "Quiz",
    "QuizQuestion",
    "QuizAnswerOption",
    "QuizCompletion",
    "UserProgress",
    "QuizContinuationLimit",
]


def init_db(bind=None):
    """Create all tables"""
    from ..core.database import engine

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created")


def drop_all(bind=None):
    """Drop all tables (development and tests only)"""
    from ..core.database import engine

    Base.metadata.drop_all(bind=bind or engine)
    logger.warning("All tables dropped")
