"""
Progress aggregation tests

Incremental rollup and badge awarding, plus read-time streak, CPD hours
and achievements. Also the progress service summary over the database.
"""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from app.core.config import GradingConfig
from app.core.progress import (
    apply_completion,
    calculate_cpd_hours,
    calculate_quiz_stats,
    calculate_streak_days,
    generate_achievements,
)
from app.services.completion_service import CompletionService
from app.services.progress_service import ProgressService

from conftest import QUIZ_ID, USER_ID, answers_for


NOW = datetime(2024, 5, 1, 12, 0, 0)
TODAY = NOW.date()


def completion(percentage=100, passed=True, days_ago=0, content_id=None, time_spent=60, max_score=100):
    return SimpleNamespace(
        quiz_id=QUIZ_ID,
        content_id=content_id,
        score=int(round(percentage * max_score / 100)),
        max_score=max_score,
        percentage=percentage,
        passed=passed,
        time_spent=time_spent,
        completed_at=NOW - timedelta(days=days_ago),
    )


def empty_progress():
    return SimpleNamespace(
        total_quizzes_completed=0,
        total_quizzes_passed=0,
        total_score=0,
        total_max_score=0,
        average_score=0,
        total_time_spent=0,
        completion_rate=0,
        last_activity_at=None,
        badges={},
    )


class TestApplyCompletion:
    """Incremental rollup"""

    def test_totals_and_rates(self):
        progress = empty_progress()
        apply_completion(progress, completion(100))
        apply_completion(progress, completion(40, passed=False))

        assert progress.total_quizzes_completed == 2
        assert progress.total_quizzes_passed == 1
        assert progress.total_score == 140
        assert progress.average_score == 70
        assert progress.completion_rate == 50
        assert progress.total_time_spent == 120
        assert progress.last_activity_at == NOW

    def test_badge_awarded_once(self):
        progress = empty_progress()
        first = apply_completion(progress, completion(100))
        assert {b["id"] for b in first} == {"first-quiz", "perfect-score"}

        # force eligibility for first-quiz a second time
        progress.total_quizzes_completed = 0
        second = apply_completion(progress, completion(100))

        assert second == []
        assert list(progress.badges).count("first-quiz") == 1
        assert len(progress.badges) == 2

    def test_high_scorer_and_quiz_master(self):
        progress = empty_progress()
        awarded = []
        for _ in range(10):
            awarded.extend(b["id"] for b in apply_completion(progress, completion(90)))

        assert awarded == ["first-quiz", "high-scorer", "quiz-master"]

    def test_high_scorer_uses_average(self):
        progress = empty_progress()
        awarded = []
        for percentage in (100, 100, 100, 100, 50):
            awarded.extend(apply_completion(progress, completion(percentage, passed=percentage == 100)))

        high_scorer = [b for b in awarded if b["id"] == "high-scorer"]
        assert len(high_scorer) == 1
        assert progress.average_score == 90
        assert high_scorer[0]["description"] == "Average of 80% or higher across 5 or more quizzes"

    def test_badge_shape(self):
        progress = empty_progress()
        badge = apply_completion(progress, completion(50, passed=False))[0]
        assert badge == {
            "id": "first-quiz",
            "name": "First Quiz",
            "description": "Completed your first quiz",
            "icon": "🎯",
            "category": "completion",
            "earned_at": NOW.isoformat(),
        }


class TestStreak:

    def test_consecutive_days(self):
        completions = [completion(days_ago=d) for d in (0, 0, 1, 2, 4)]
        assert calculate_streak_days(completions, today=TODAY) == 3

    def test_no_completion_today(self):
        assert calculate_streak_days([completion(days_ago=1)], today=TODAY) == 0

    def test_empty(self):
        assert calculate_streak_days([], today=TODAY) == 0


class TestCpdHours:

    @pytest.fixture
    def config(self):
        return GradingConfig(default_pass_percentage=100, min_hours_per_quiz=0.5, default_hours_per_quiz=0.75)

    def test_duration_based(self, config):
        completions = [completion(content_id="long"), completion(content_id="short")]
        durations = {"long": 5400, "short": 600}
        # 1.5h, and 10 minutes floored to 0.5h
        assert calculate_cpd_hours(completions, durations, config) == 2.0

    def test_unknown_duration_uses_default(self, config):
        completions = [completion(content_id=None), completion(content_id="no-duration")]
        assert calculate_cpd_hours(completions, {"no-duration": None}, config) == 1.5

    def test_failed_completions_earn_nothing(self, config):
        assert calculate_cpd_hours([completion(40, passed=False)], {}, config) == 0


class TestAchievements:

    def test_thresholds(self):
        completions = [completion(80, days_ago=d) for d in range(5, 0, -1)]
        ids = [a["id"] for a in generate_achievements(completions)]
        assert ids == ["quiz-novice", "first-quiz"]

    def test_perfectionist(self):
        completions = [completion(80, days_ago=2), completion(100, days_ago=1)]
        achievements = {a["id"]: a for a in generate_achievements(completions)}

        assert achievements["perfectionist"]["earned_at"] == (NOW - timedelta(days=1)).isoformat()
        assert achievements["first-quiz"]["earned_at"] == (NOW - timedelta(days=2)).isoformat()


class TestQuizStats:

    def test_empty(self):
        assert calculate_quiz_stats([]) == {
            "total_attempts": 0,
            "total_passed": 0,
            "average_score": 0,
            "pass_rate": 0,
            "average_time_spent": 0,
        }


class TestProgressService:
    """Rollup and summary read from the database"""

    def test_no_progress(self, db, quiz):
        assert ProgressService.get_progress(db, USER_ID) is None
        summary = ProgressService.get_progress_summary(db, USER_ID, today=TODAY)
        assert summary["total_quizzes_completed"] == 0
        assert summary["cpd_hours"] == 0
        assert summary["recent_activity"] == []

    def test_progress_and_summary(self, db, quiz):
        CompletionService.create_completion(
            db, USER_ID, QUIZ_ID, percentage=100, answers=answers_for(), time_spent=300, now=NOW
        )

        progress = ProgressService.get_progress(db, USER_ID, today=TODAY)
        assert progress["total_quizzes_completed"] == 1
        assert progress["streak_days"] == 1
        assert [b["id"] for b in progress["badges"]] == ["first-quiz", "perfect-score"]

        summary = ProgressService.get_progress_summary(db, USER_ID, today=TODAY)
        # seeded episode is one hour long
        assert summary["cpd_hours"] == 1.0
        assert summary["streak_days"] == 1
        assert summary["average_score"] == 100
        assert [c.quiz_id for c in summary["recent_activity"]] == [QUIZ_ID]
        assert {a["id"] for a in summary["achievements"]} == {"first-quiz", "perfectionist"}

    def test_summary_tracks_deletes(self, db, quiz):
        completion_row = CompletionService.create_completion(
            db, USER_ID, QUIZ_ID, percentage=100, answers=answers_for(), now=NOW
        )
        CompletionService.delete_completion(db, completion_row.id)

        assert ProgressService.get_progress_summary(db, USER_ID, today=TODAY)["total_quizzes_completed"] == 0
        assert ProgressService.get_progress(db, USER_ID, today=TODAY)["total_quizzes_completed"] == 1
