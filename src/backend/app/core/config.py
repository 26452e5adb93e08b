"""
Quiz policy and CPD configuration.

Precedence: environment variables > defaults.
Per-quiz columns (max_attempts, cooldown_hours, reset_days, pass_percentage)
override these values where set.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ContinuationConfig:
    """
    Attempt limits for a (user, quiz) pair

    Attributes:
        max_attempts: attempts allowed per reset window
        cooldown_hours: block length after a failed attempt
        reset_days: length of the reset window, counted from the first attempt
    """
    max_attempts: int = 3
    cooldown_hours: float = 24.0
    reset_days: int = 7


@dataclass(frozen=True)
class GradingConfig:
    """
    Grading and CPD credit settings

    Attributes:
        default_pass_percentage: pass threshold for quizzes without their own
        min_hours_per_quiz: floor applied to duration-based CPD credit
        default_hours_per_quiz: credit for a passed quiz whose episode length is unknown
    """
    default_pass_percentage: int = 100
    min_hours_per_quiz: float = 0.5
    default_hours_per_quiz: float = 0.75


def get_continuation_config() -> ContinuationConfig:
    """
    Read attempt limits from the environment

    Environment variables:
        QUIZ_MAX_ATTEMPTS: attempt budget (default 3)
        QUIZ_COOLDOWN_HOURS: cooldown after a failed attempt (default 24)
        QUIZ_RESET_DAYS: reset window in days (default 7)

    Raises:
        ValueError: when a value is not a positive number
    """
    config = ContinuationConfig(
        max_attempts=int(os.getenv("QUIZ_MAX_ATTEMPTS", "3")),
        cooldown_hours=float(os.getenv("QUIZ_COOLDOWN_HOURS", "24")),
        reset_days=int(os.getenv("QUIZ_RESET_DAYS", "7")),
    )
    if config.max_attempts < 1:
        raise ValueError("QUIZ_MAX_ATTEMPTS must be at least 1")
    if config.cooldown_hours < 0 or config.reset_days < 1:
        raise ValueError("QUIZ_COOLDOWN_HOURS must be >= 0 and QUIZ_RESET_DAYS >= 1")
    return config


def get_grading_config() -> GradingConfig:
    """
    Read grading settings from the environment

    Environment variables:
        QUIZ_DEFAULT_PASS_PERCENTAGE: pass threshold 0-100 (default 100)
        CPD_MIN_HOURS_PER_QUIZ: default 0.5
        CPD_DEFAULT_HOURS_PER_QUIZ: default 0.75
    """
    pass_percentage = int(os.getenv("QUIZ_DEFAULT_PASS_PERCENTAGE", "100"))
    if not 0 <= pass_percentage <= 100:
        raise ValueError("QUIZ_DEFAULT_PASS_PERCENTAGE must be between 0 and 100")

    return GradingConfig(
        default_pass_percentage=pass_percentage,
        min_hours_per_quiz=float(os.getenv("CPD_MIN_HOURS_PER_QUIZ", "0.5")),
        default_hours_per_quiz=float(os.getenv("CPD_DEFAULT_HOURS_PER_QUIZ", "0.75")),
    )


def get_session_idle_minutes() -> float:
    """
    Idle time after which a live quiz session is dropped

    Environment variables:
        QUIZ_SESSION_IDLE_MINUTES: default 120
    """
    minutes = float(os.getenv("QUIZ_SESSION_IDLE_MINUTES", "120"))
    if minutes <= 0:
        raise ValueError("QUIZ_SESSION_IDLE_MINUTES must be positive")
    return minutes
