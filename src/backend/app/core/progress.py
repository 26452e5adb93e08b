"""
Progress rollup, badges and read-time statistics

apply_completion() updates a UserProgress row incrementally and awards
badges. The remaining helpers derive display statistics (streak, CPD hours,
achievements, per-quiz stats) from completion rows every time they are
read; nothing they return is stored.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.core.config import GradingConfig
from app.core.quiz_session import percentage_of, utcnow


# Persisted badges, each awarded at most once
BADGES = {
    "first-quiz": {
        "name": "First Quiz",
        "description": "Completed your first quiz",
        "icon": "🎯",
        "category": "completion",
    },
    "high-scorer": {
        "name": "High Scorer",
        "description": "Average of 80% or higher across 5 or more quizzes",
        "icon": "🏆",
        "category": "score",
    },
    "perfect-score": {
        "name": "Perfect Score",
        "description": "Scored 100% on a quiz",
        "icon": "⭐",
        "category": "score",
    },
    "quiz-master": {
        "name": "Quiz Master",
        "description": "Completed 10 quizzes",
        "icon": "🎓",
        "category": "completion",
    },
}

# Display-only achievements: (id, name, description, icon, completions needed)
COMPLETION_ACHIEVEMENTS = [
    ("first-quiz", "First Steps", "Completed your first quiz", "🎯", 1),
    ("quiz-novice", "Quiz Novice", "Completed 5 quizzes", "📚", 5),
    ("quiz-apprentice", "Quiz Apprentice", "Completed 10 quizzes", "🎓", 10),
    ("quiz-master", "Quiz Master", "Completed 25 quizzes", "👑", 25),
]


def make_badge(badge_id: str, earned_at: datetime) -> Dict[str, Any]:
    info = BADGES[badge_id]
    return {"id": badge_id, **info, "earned_at": earned_at.isoformat()}


def eligible_badges(progress, completion) -> List[str]:
    """
    Badge ids this completion qualifies for, already-earned ones excluded

    Args:
        progress: UserProgress row after the totals were updated
        completion: the completion just persisted
    """
    earned = progress.badges or {}
    candidates = []

    if progress.total_quizzes_completed == 1:
        candidates.append("first-quiz")
    if progress.average_score >= 80 and progress.total_quizzes_completed >= 5:
        candidates.append("high-scorer")
    if completion.percentage == 100:
        candidates.append("perfect-score")
    if progress.total_quizzes_completed >= 10:
        candidates.append("quiz-master")

    return [badge_id for badge_id in candidates if badge_id not in earned]


def apply_completion(progress, completion) -> List[Dict[str, Any]]:
    """
    Fold one new completion into the user's rollup

    Totals, average score, completion rate and last activity are updated,
    then badge eligibility is checked. Badges live in a dict keyed by id,
    so a badge can never be present twice.

    Args:
        progress: UserProgress row (mutated)
        completion: QuizCompletion row

    Returns:
        List[dict]: badges awarded by this completion
    """
    progress.total_quizzes_completed = (progress.total_quizzes_completed or 0) + 1
    if completion.passed:
        progress.total_quizzes_passed = (progress.total_quizzes_passed or 0) + 1
    progress.total_score = (progress.total_score or 0) + completion.score
    progress.total_max_score = (progress.total_max_score or 0) + completion.max_score
    progress.average_score = percentage_of(progress.total_score, progress.total_max_score)
    progress.total_time_spent = (progress.total_time_spent or 0) + (completion.time_spent or 0)
    progress.completion_rate = percentage_of(
        progress.total_quizzes_passed or 0, progress.total_quizzes_completed
    )
    progress.last_activity_at = completion.completed_at

    new_badges = [
        make_badge(badge_id, completion.completed_at)
        for badge_id in eligible_badges(progress, completion)
    ]
    if new_badges:
        # reassign so the JSON column is flagged dirty
        progress.badges = {**(progress.badges or {}), **{b["id"]: b for b in new_badges}}
    return new_badges


def calculate_streak_days(completions: Iterable, today: Optional[date] = None) -> int:
    """
    Consecutive days with a completion, ending today

    Distinct completion dates are walked newest first; the streak grows
    while each date is exactly one day before the previous one. No
    completion today means a streak of 0.
    """
    today = today or utcnow().date()
    unique_dates = sorted({c.completed_at.date() for c in completions}, reverse=True)

    streak = 0
    for completed_on in unique_dates:
        if completed_on == today - timedelta(days=streak):
            streak += 1
        else:
            break
    return streak


def calculate_cpd_hours(
    completions: Iterable,
    durations: Mapping[str, Optional[int]],
    config: GradingConfig
) -> float:
    """
    CPD hours earned from passed completions

    Episode length in hours (floored at min_hours_per_quiz) when the
    related episode has a known duration, otherwise default_hours_per_quiz.

    Args:
        completions: QuizCompletion rows
        durations: content_id -> duration in seconds
        config: grading settings
    """
    hours = 0.0
    for completion in completions:
        if not completion.passed:
            continue
        duration = durations.get(completion.content_id) if completion.content_id else None
        if duration:
            hours += max(config.min_hours_per_quiz, duration / 3600)
        else:
            hours += config.default_hours_per_quiz
    return round(hours, 2)


def generate_achievements(completions: List) -> List[Dict[str, Any]]:
    """
    Display achievements from completion count and perfect-score count

    earned_at is the time of the completion that crossed the threshold.
    Sorted newest first.
    """
    ordered = sorted(completions, key=lambda c: c.completed_at)
    achievements = []

    for achievement_id, name, description, icon, needed in COMPLETION_ACHIEVEMENTS:
        if len(ordered) >= needed:
            achievements.append({
                "id": achievement_id,
                "name": name,
                "description": description,
                "icon": icon,
                "earned_at": ordered[needed - 1].completed_at.isoformat(),
                "category": "completion",
            })

    perfect = [c for c in ordered if c.percentage == 100]
    if perfect:
        achievements.append({
            "id": "perfectionist",
            "name": "Perfectionist",
            "description": "Scored 100% on a quiz",
            "icon": "💎",
            "earned_at": perfect[0].completed_at.isoformat(),
            "category": "score",
        })

    return sorted(achievements, key=lambda a: a["earned_at"], reverse=True)


def summarize_progress(
    completions: List,
    durations: Mapping[str, Optional[int]],
    config: GradingConfig,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Read-time progress summary recomputed from all of a user's completions

    Returns:
        dict: totals, average score, completion rate, time spent, recent
        activity (5 newest), streak days, CPD hours, achievements
    """
    total_completed = len(completions)
    total_passed = sum(1 for c in completions if c.passed)
    total_score = sum(c.score for c in completions)
    total_max_score = sum(c.max_score for c in completions)
    recent = sorted(completions, key=lambda c: c.completed_at, reverse=True)[:5]

    return {
        "total_quizzes_completed": total_completed,
        "total_quizzes_passed": total_passed,
        "average_score": percentage_of(total_score, total_max_score),
        "completion_rate": percentage_of(total_passed, total_completed),
        "total_time_spent": sum(c.time_spent or 0 for c in completions),
        "recent_activity": recent,
        "streak_days": calculate_streak_days(completions, today),
        "cpd_hours": calculate_cpd_hours(completions, durations, config),
        "achievements": generate_achievements(completions),
    }


def calculate_quiz_stats(completions: List) -> Dict[str, int]:
    """Aggregate figures for one quiz across all users"""
    if not completions:
        return {
            "total_attempts": 0,
            "total_passed": 0,
            "average_score": 0,
            "pass_rate": 0,
            "average_time_spent": 0,
        }

    total_passed = sum(1 for c in completions if c.passed)
    return {
        "total_attempts": len(completions),
        "total_passed": total_passed,
        "average_score": percentage_of(
            sum(c.score for c in completions), sum(c.max_score for c in completions)
        ),
        "pass_rate": percentage_of(total_passed, len(completions)),
        "average_time_spent": int(round(sum(c.time_spent or 0 for c in completions) / len(completions))),
    }


def calculate_quiz_progress(completions: List, quiz_id: str) -> Optional[Dict[str, Any]]:
    """One user's history on one quiz, None if never completed"""
    rows = [c for c in completions if c.quiz_id == quiz_id]
    if not rows:
        return None

    scores = [c.score for c in rows]
    return {
        "quiz_id": quiz_id,
        "attempts": len(rows),
        "best_score": max(scores),
        "average_score": int(round(sum(scores) / len(scores))),
        "time_spent": sum(c.time_spent or 0 for c in rows),
        "last_attempt": max(c.completed_at for c in rows).isoformat(),
        "passed": any(c.passed for c in rows),
    }
