"""
Quiz continuation policy (attempt budget, cooldown, reset window)

Pure evaluation over an AttemptWindow snapshot; no database access.
ContinuationService loads the row, asks the policy, and writes back.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from app.core.config import ContinuationConfig


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class AttemptWindow:
    """
    Snapshot of one (user, quiz) continuation row

    Attributes:
        attempts_used: attempts consumed in the current window
        reset_at: when the window expires and the counter returns to zero
        last_attempt_at: time of the most recent attempt
        last_attempt_passed: outcome of the most recent attempt
        blocked_until: cooldown expiry set by a failed attempt
    """
    attempts_used: int
    reset_at: datetime
    last_attempt_at: Optional[datetime] = None
    last_attempt_passed: Optional[bool] = None
    blocked_until: Optional[datetime] = None


@dataclass(frozen=True)
class ContinuationStatus:
    """Result of an attempt-status check (shape of the attempt-status contract)"""
    can_attempt: bool
    attempts_remaining: int
    total_attempts: int
    attempts_used: int
    next_attempt_available_at: Optional[datetime]
    reset_at: datetime
    blocked_until: Optional[datetime]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canAttempt": self.can_attempt,
            "attemptsRemaining": self.attempts_remaining,
            "totalAttempts": self.total_attempts,
            "attemptsUsed": self.attempts_used,
            "nextAttemptAvailableAt": _iso(self.next_attempt_available_at),
            "resetAt": _iso(self.reset_at),
            "blockedUntil": _iso(self.blocked_until),
            "message": self.message,
        }


@dataclass(frozen=True)
class ContinuationCheck:
    """
    Status plus the window that should be persisted

    reset_window is set only when the stored window had expired and
    must be replaced.
    """
    status: ContinuationStatus
    reset_window: Optional[AttemptWindow] = None


class ContinuationPolicy:
    """Attempt gate for a single quiz"""

    def __init__(self, max_attempts: int = 3, cooldown_hours: float = 24.0, reset_days: int = 7):
        self.max_attempts = max_attempts
        self.cooldown_hours = cooldown_hours
        self.reset_days = reset_days

    @classmethod
    def for_quiz(
        cls,
        config: ContinuationConfig,
        quiz=None,
        custom_max_attempts: Optional[int] = None
    ) -> "ContinuationPolicy":
        """
        Build the effective policy

        Priority: per-user custom_max_attempts > quiz columns > config

        Args:
            config: environment defaults
            quiz: Quiz row (optional); nullable override columns are honoured
            custom_max_attempts: per-user override from the continuation row
        """
        max_attempts = config.max_attempts
        cooldown_hours = config.cooldown_hours
        reset_days = config.reset_days

        if quiz is not None:
            if quiz.max_attempts:
                max_attempts = quiz.max_attempts
            if quiz.cooldown_hours is not None:
                cooldown_hours = quiz.cooldown_hours
            if quiz.reset_days:
                reset_days = quiz.reset_days

        if custom_max_attempts:
            max_attempts = custom_max_attempts

        return cls(max_attempts=max_attempts, cooldown_hours=cooldown_hours, reset_days=reset_days)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self.cooldown_hours)

    def next_reset(self, now: datetime) -> datetime:
        return now + timedelta(days=self.reset_days)

    def fresh_window(self, now: datetime) -> AttemptWindow:
        """Zeroed window starting at now (manual reset or expiry)"""
        return AttemptWindow(attempts_used=0, reset_at=self.next_reset(now))

    def evaluate(self, window: Optional[AttemptWindow], now: datetime) -> ContinuationCheck:
        """
        Decide whether a new attempt is allowed

        Precedence:
        1. no row yet -> allowed, full budget, projected reset date
        2. window expired -> reset, allowed
        3. explicit cooldown (blocked_until) still running -> blocked
        4. budget exhausted -> blocked until reset_at
        5. last attempt failed and its cooldown is still running -> blocked
        6. allowed

        Args:
            window: current row snapshot, None if the user never attempted
            now: evaluation time (naive UTC)

        Returns:
            ContinuationCheck: status, plus the replacement window on expiry
        """
        if window is None:
            return ContinuationCheck(ContinuationStatus(
                can_attempt=True,
                attempts_remaining=self.max_attempts,
                total_attempts=self.max_attempts,
                attempts_used=0,
                next_attempt_available_at=None,
                reset_at=self.next_reset(now),
                blocked_until=None,
                message=self._remaining_message(self.max_attempts),
            ))

        if now > window.reset_at:
            fresh = self.fresh_window(now)
            return ContinuationCheck(self.evaluate(fresh, now).status, reset_window=fresh)

        used = window.attempts_used
        remaining = max(self.max_attempts - used, 0)

        if window.blocked_until and now < window.blocked_until:
            return ContinuationCheck(ContinuationStatus(
                can_attempt=False,
                attempts_remaining=remaining,
                total_attempts=self.max_attempts,
                attempts_used=used,
                next_attempt_available_at=window.blocked_until,
                reset_at=window.reset_at,
                blocked_until=window.blocked_until,
                message=f"You are in cooldown. Next attempt available at {window.blocked_until:%Y-%m-%d %H:%M} UTC",
            ))

        if used >= self.max_attempts:
            return ContinuationCheck(ContinuationStatus(
                can_attempt=False,
                attempts_remaining=0,
                total_attempts=self.max_attempts,
                attempts_used=used,
                next_attempt_available_at=window.reset_at,
                reset_at=window.reset_at,
                blocked_until=None,
                message=f"All attempts used. Attempts will reset on {window.reset_at:%Y-%m-%d}",
            ))

        # passing attempts never start a cooldown
        if window.last_attempt_at and window.last_attempt_passed is False and self.cooldown_hours > 0:
            next_attempt = window.last_attempt_at + self.cooldown
            if now < next_attempt:
                return ContinuationCheck(ContinuationStatus(
                    can_attempt=False,
                    attempts_remaining=remaining,
                    total_attempts=self.max_attempts,
                    attempts_used=used,
                    next_attempt_available_at=next_attempt,
                    reset_at=window.reset_at,
                    blocked_until=next_attempt,
                    message=f"Cooldown active. Next attempt available at {next_attempt:%Y-%m-%d %H:%M} UTC",
                ))

        if used == 0 and window.last_attempt_at is None:
            message = "Attempts have been reset"
        else:
            message = self._remaining_message(remaining)

        return ContinuationCheck(ContinuationStatus(
            can_attempt=True,
            attempts_remaining=remaining,
            total_attempts=self.max_attempts,
            attempts_used=used,
            next_attempt_available_at=None,
            reset_at=window.reset_at,
            blocked_until=None,
            message=message,
        ))

    def record(self, window: Optional[AttemptWindow], now: datetime, passed: bool) -> AttemptWindow:
        """
        Consume one attempt

        A failed attempt sets blocked_until = now + cooldown; a passed one
        clears it. An expired window is reset before counting.

        Args:
            window: current row snapshot, None to start a new window
            now: attempt time
            passed: attempt outcome

        Returns:
            AttemptWindow: the window to persist
        """
        if window is None or now > window.reset_at:
            window = self.fresh_window(now)

        return replace(
            window,
            attempts_used=min(window.attempts_used + 1, self.max_attempts),
            last_attempt_at=now,
            last_attempt_passed=passed,
            blocked_until=None if passed else now + self.cooldown,
        )

    @staticmethod
    def _remaining_message(remaining: int) -> str:
        noun = "attempt" if remaining == 1 else "attempts"
        return f"{remaining} {noun} remaining"
