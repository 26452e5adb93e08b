"""
Quiz definition provider
Builds immutable QuizDefinition objects from the quiz tables
"""
import uuid
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session, selectinload

from app.core.config import GradingConfig, get_grading_config
from app.core.database import store_operation
from app.core.exceptions import NotFoundError, ValidationError
from app.core.quiz_session import AnswerOption, QuestionDefinition, QuizDefinition
from app.models import Episode, Quiz, QuizAnswerOption, QuizQuestion


class QuizService:
    """Read-only access to quiz content"""

    @staticmethod
    def find_quiz(db: Session, quiz_id: str) -> Optional[Quiz]:
        """Active quiz row, or None"""
        with store_operation(db, "find_quiz"):
            return db.query(Quiz).filter(
                Quiz.id == quiz_id,
                Quiz.is_active == True
            ).first()

    @staticmethod
    def get_quiz(db: Session, quiz_id: str) -> Quiz:
        """
        Active quiz row

        Raises:
            NotFoundError: quiz missing or inactive
        """
        quiz = QuizService.find_quiz(db, quiz_id)
        if not quiz:
            raise NotFoundError(f"Quiz not found: {quiz_id}")
        return quiz

    @staticmethod
    def pass_percentage_for(quiz: Optional[Quiz], grading: Optional[GradingConfig] = None) -> int:
        """Quiz threshold, falling back to QUIZ_DEFAULT_PASS_PERCENTAGE"""
        grading = grading or get_grading_config()
        if quiz is not None and quiz.pass_percentage is not None:
            return quiz.pass_percentage
        return grading.default_pass_percentage

    @staticmethod
    def get_quiz_definition(
        db: Session,
        quiz_id: str,
        grading: Optional[GradingConfig] = None
    ) -> QuizDefinition:
        """
        Load a quiz with its questions and answers

        Questions keep their sort_order; answers are sorted by letter.

        Args:
            db: database session
            quiz_id: quiz ID
            grading: grading settings (defaults from the environment)

        Returns:
            QuizDefinition: immutable definition for a QuizSession

        Raises:
            NotFoundError: quiz missing or inactive
        """
        with store_operation(db, "get_quiz_definition"):
            quiz = db.query(Quiz).options(
                selectinload(Quiz.questions).selectinload(QuizQuestion.answers)
            ).filter(
                Quiz.id == quiz_id,
                Quiz.is_active == True
            ).first()

        if not quiz:
            raise NotFoundError(f"Quiz not found: {quiz_id}")

        questions = [
            QuestionDefinition(
                id=q.id,
                text=q.question_text,
                explanation=q.rationale,
                learning_outcome=q.learning_outcome,
                answers=[
                    AnswerOption(
                        id=a.id,
                        letter=a.answer_letter,
                        text=a.answer_text,
                        is_correct=bool(a.is_correct)
                    )
                    for a in q.answers
                ],
            )
            for q in quiz.questions
        ]

        return QuizDefinition(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            questions=questions,
            pass_percentage=QuizService.pass_percentage_for(quiz, grading),
            content_id=quiz.content_id,
        )

    @staticmethod
    def import_quiz(db: Session, quiz_data: Dict[str, Any], update_existing: bool = False) -> Optional[Quiz]:
        """
        Create a quiz (and optionally its episode) from a JSON-style dict

        Expected keys: title, questions[{question_text, rationale,
        learning_outcome, answers[{letter, text, is_correct}]}]; optional
        id, description, content_id, pass_percentage, max_attempts,
        cooldown_hours, reset_days, episode{id, title, duration}.

        Args:
            db: database session (not committed)
            quiz_data: quiz description
            update_existing: replace an existing quiz with the same id

        Returns:
            Quiz | None: the new row, None if it already existed and was skipped

        Raises:
            ValidationError: missing fields, or a question without a correct answer
        """
        title = quiz_data.get("title")
        questions = quiz_data.get("questions") or []
        if not title or not questions:
            raise ValidationError("Quiz needs a title and at least one question")

        for index, q in enumerate(questions, start=1):
            answers = q.get("answers") or []
            if not q.get("question_text") or len(answers) < 2:
                raise ValidationError(f"Question {index}: text and at least two answers are required")
            if not any(a.get("is_correct") for a in answers):
                raise ValidationError(f"Question {index}: no correct answer")

        quiz_id = quiz_data.get("id") or str(uuid.uuid4())
        existing = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if existing:
            if not update_existing:
                return None
            db.delete(existing)
            db.flush()

        episode_data = quiz_data.get("episode")
        content_id = quiz_data.get("content_id")
        if episode_data:
            content_id = episode_data.get("id") or content_id or str(uuid.uuid4())
            episode = db.query(Episode).filter(Episode.id == content_id).first()
            if not episode:
                episode = Episode(id=content_id, title=episode_data.get("title") or title)
                db.add(episode)
            episode.duration = episode_data.get("duration", episode.duration)

        quiz = Quiz(
            id=quiz_id,
            title=title,
            description=quiz_data.get("description"),
            content_id=content_id,
            pass_percentage=quiz_data.get("pass_percentage"),
            max_attempts=quiz_data.get("max_attempts"),
            cooldown_hours=quiz_data.get("cooldown_hours"),
            reset_days=quiz_data.get("reset_days"),
            is_active=True
        )
        for order, q in enumerate(questions):
            question = QuizQuestion(
                id=q.get("id") or str(uuid.uuid4()),
                question_text=q["question_text"],
                rationale=q.get("rationale"),
                learning_outcome=q.get("learning_outcome"),
                sort_order=order
            )
            question.answers = [
                QuizAnswerOption(
                    id=a.get("id") or str(uuid.uuid4()),
                    answer_letter=a.get("letter") or chr(ord("A") + i),
                    answer_text=a.get("text", ""),
                    is_correct=bool(a.get("is_correct"))
                )
                for i, a in enumerate(q["answers"])
            ]
            quiz.questions.append(question)

        db.add(quiz)
        db.flush()
        return quiz
