"""
Continuation service tests

Persistence of attempt limits: lazy row creation, expiry write-back,
manual reset, per-quiz and per-user overrides, and usage statistics.
"""
import uuid
from datetime import datetime, timedelta

import pytest

from app.models import QuizCompletion, QuizContinuationLimit
from app.services.continuation_service import ContinuationService

from conftest import QUIZ_ID, USER_ID, seed_quiz


NOW = datetime(2024, 5, 1, 12, 0, 0)


def limit_row(db, user_id=USER_ID, quiz_id=QUIZ_ID):
    return db.query(QuizContinuationLimit).filter(
        QuizContinuationLimit.user_id == user_id,
        QuizContinuationLimit.quiz_id == quiz_id
    ).first()


class TestCheckAttemptLimits:

    def test_no_row_is_not_created(self, db, quiz):
        status = ContinuationService.check_attempt_limits(db, USER_ID, QUIZ_ID, now=NOW)

        assert status.can_attempt is True
        assert status.attempts_remaining == 3
        assert limit_row(db) is None

    def test_failed_attempt_blocks_next_check(self, db, quiz):
        ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=False, now=NOW)

        status = ContinuationService.check_attempt_limits(db, USER_ID, QUIZ_ID, now=NOW + timedelta(hours=1))

        assert status.can_attempt is False
        assert status.next_attempt_available_at == NOW + timedelta(hours=24)

    def test_expired_window_is_written_back(self, db, quiz):
        ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=False, now=NOW)
        later = NOW + timedelta(days=8)

        status = ContinuationService.check_attempt_limits(db, USER_ID, QUIZ_ID, now=later)

        assert status.can_attempt is True
        assert status.attempts_used == 0
        row = limit_row(db)
        assert row.attempts_used == 0
        assert row.blocked_until is None
        assert row.last_attempt_at is None
        assert row.reset_at == later + timedelta(days=7)

    def test_unknown_quiz_uses_defaults(self, db):
        status = ContinuationService.check_attempt_limits(db, USER_ID, "no-such-quiz", now=NOW)
        assert status.total_attempts == 3


class TestRecordAttempt:

    def test_creates_row(self, db, quiz):
        row = ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=True, now=NOW)

        assert row.attempts_used == 1
        assert row.last_attempt_passed is True
        assert row.blocked_until is None
        assert row.reset_at == NOW + timedelta(days=7)

    def test_exhausting_budget(self, db, quiz):
        for minute in range(3):
            ContinuationService.record_attempt(
                db, USER_ID, QUIZ_ID, passed=True, now=NOW + timedelta(minutes=minute)
            )

        status = ContinuationService.check_attempt_limits(db, USER_ID, QUIZ_ID, now=NOW + timedelta(hours=1))
        assert status.can_attempt is False
        assert status.next_attempt_available_at == NOW + timedelta(days=7)

    def test_quiz_level_budget(self, db):
        seed_quiz(db, quiz_id="strict-quiz", max_attempts=1, cooldown_hours=0)
        ContinuationService.record_attempt(db, USER_ID, "strict-quiz", passed=True, now=NOW)

        status = ContinuationService.check_attempt_limits(db, USER_ID, "strict-quiz", now=NOW)
        assert status.total_attempts == 1
        assert status.can_attempt is False


class TestResetAndOverrides:

    def test_reset_without_row(self, db, quiz):
        assert ContinuationService.reset_user_attempts(db, USER_ID, QUIZ_ID, now=NOW) is None

    def test_reset_clears_everything(self, db, quiz):
        ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=False, now=NOW)
        later = NOW + timedelta(hours=1)

        row = ContinuationService.reset_user_attempts(db, USER_ID, QUIZ_ID, now=later)

        assert row.attempts_used == 0
        assert row.last_attempt_at is None
        assert row.blocked_until is None
        assert row.reset_at == later + timedelta(days=7)
        assert ContinuationService.check_attempt_limits(db, USER_ID, QUIZ_ID, now=later).can_attempt is True

    def test_custom_max_attempts(self, db, quiz):
        ContinuationService.set_custom_max_attempts(db, USER_ID, QUIZ_ID, 5, now=NOW)
        assert ContinuationService.get_remaining_attempts(db, USER_ID, QUIZ_ID, now=NOW) == 5

        ContinuationService.set_custom_max_attempts(db, USER_ID, QUIZ_ID, None, now=NOW)
        assert ContinuationService.get_remaining_attempts(db, USER_ID, QUIZ_ID, now=NOW) == 3

    def test_custom_max_attempts_must_be_positive(self, db, quiz):
        with pytest.raises(ValueError):
            ContinuationService.set_custom_max_attempts(db, USER_ID, QUIZ_ID, 0, now=NOW)

    def test_next_attempt_time(self, db, quiz):
        assert ContinuationService.get_next_attempt_available_time(db, USER_ID, QUIZ_ID, now=NOW) is None

        ContinuationService.record_attempt(db, USER_ID, QUIZ_ID, passed=False, now=NOW)
        assert ContinuationService.get_next_attempt_available_time(
            db, USER_ID, QUIZ_ID, now=NOW
        ) == NOW + timedelta(hours=24)


class TestContinuationStats:

    def test_empty(self, db, quiz):
        assert ContinuationService.get_continuation_stats(db, QUIZ_ID) == {
            "total_users": 0,
            "average_attempts_used": 0,
            "completion_rate_by_attempt": [],
        }

    def test_rates_by_attempt(self, db, quiz):
        ContinuationService.record_attempt(db, "alice", QUIZ_ID, passed=True, now=NOW)
        ContinuationService.record_attempt(db, "bob", QUIZ_ID, passed=False, now=NOW)
        ContinuationService.record_attempt(db, "bob", QUIZ_ID, passed=False, now=NOW + timedelta(days=1, hours=1))
        db.add(QuizCompletion(
            id=str(uuid.uuid4()),
            user_id="alice",
            quiz_id=QUIZ_ID,
            score=100,
            max_score=100,
            percentage=100,
            completed_at=NOW,
            answers=[],
            passed=True
        ))
        db.commit()

        stats = ContinuationService.get_continuation_stats(db, QUIZ_ID)

        assert stats["total_users"] == 2
        assert stats["average_attempts_used"] == 1.5
        assert stats["completion_rate_by_attempt"] == [
            {"attempt": 1, "completion_rate": 50},
            {"attempt": 2, "completion_rate": 0},
            {"attempt": 3, "completion_rate": 0},
        ]
