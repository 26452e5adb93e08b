"""
Submission tests

A QuizSession driven to completion against the seeded quiz, then stored
through SubmissionService.
"""
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import PolicyDeniedError, ValidationError
from app.core.quiz_session import QuizSession, SessionPhase
from app.services.continuation_service import ContinuationService
from app.services.quiz_service import QuizService
from app.services.submission_service import SubmissionService

from conftest import QUIZ_ID, USER_ID


NOW = datetime(2024, 5, 1, 12, 0, 0)


def play(session: QuizSession, q1_first_wrong: bool = False):
    if q1_first_wrong:
        session.select_answer(f"{QUIZ_ID}-q1-b")
        session.submit_answer()
        session.proceed()
    session.select_answer(f"{QUIZ_ID}-q1-a")
    session.submit_answer()
    session.proceed()
    session.select_answer(f"{QUIZ_ID}-q2-a")
    session.select_answer(f"{QUIZ_ID}-q2-b")
    session.submit_answer()
    session.proceed()


@pytest.fixture
def session(db, quiz):
    return QuizSession(QuizService.get_quiz_definition(db, QUIZ_ID), now=NOW)


class TestQuizDefinition:

    def test_definition_from_database(self, session):
        quiz = session.quiz
        assert quiz.pass_percentage == 100
        assert [q.id for q in quiz.questions] == [f"{QUIZ_ID}-q1", f"{QUIZ_ID}-q2"]
        assert [a.letter for a in quiz.questions[1].answers] == ["A", "B", "C"]
        assert quiz.questions[1].has_multiple_correct is True
        assert quiz.questions[0].explanation.startswith("Flea allergy")


class TestBuildAnswers:

    def test_last_attempt_per_question(self, session):
        play(session, q1_first_wrong=True)

        answers = SubmissionService.build_answers(session)

        assert answers == [
            {
                "question_id": f"{QUIZ_ID}-q1",
                "selected_answers": [f"{QUIZ_ID}-q1-a"],
                "is_correct": True,
                "points": 50,
            },
            {
                "question_id": f"{QUIZ_ID}-q2",
                "selected_answers": [f"{QUIZ_ID}-q2-a", f"{QUIZ_ID}-q2-b"],
                "is_correct": True,
                "points": 50,
            },
        ]


class TestSubmitSession:

    def test_completed_session_is_stored(self, db, session):
        play(session)

        completion = SubmissionService.submit_session(db, USER_ID, session, now=NOW + timedelta(minutes=4))

        assert completion.percentage == 100
        assert completion.passed is True
        assert completion.max_score == 100
        assert completion.time_spent == 240
        assert len(completion.answers) == 2

    def test_incomplete_session_rejected(self, db, session):
        with pytest.raises(ValidationError):
            SubmissionService.submit_session(db, USER_ID, session, now=NOW)

    def test_denied_submission_keeps_session_completed(self, db, session):
        ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=False, now=NOW)
        play(session)

        with pytest.raises(PolicyDeniedError) as exc_info:
            SubmissionService.submit_session(db, USER_ID, session, now=NOW + timedelta(minutes=5))

        assert exc_info.value.status.next_attempt_available_at == NOW + timedelta(hours=24)
        assert session.phase is SessionPhase.COMPLETED
        assert session.score().percentage == 100
