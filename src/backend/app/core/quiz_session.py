"""
Quiz session state machine

In-memory progress for one sitting of a quiz: active question, current
selection, attempts log, feedback flag, completion flag. No I/O, and no
operation raises: invalid calls are ignored.

Flow:
    loading -> in_progress -> completed
    per question: unanswered -> answered_pending_feedback -> feedback_shown

A wrong answer keeps the same question active after proceed(), so a
completed session has every question eventually answered correctly.
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Naive UTC now, the format stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionPhase(str, Enum):
    """Session lifecycle"""
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QuestionPhase(str, Enum):
    """State of the active question"""
    UNANSWERED = "unanswered"
    ANSWERED_PENDING_FEEDBACK = "answered_pending_feedback"
    FEEDBACK_SHOWN = "feedback_shown"


@dataclass(frozen=True)
class AnswerOption:
    id: str
    letter: str
    text: str
    is_correct: bool


@dataclass(frozen=True)
class QuestionDefinition:
    id: str
    text: str
    answers: List[AnswerOption]
    explanation: Optional[str] = None
    learning_outcome: Optional[str] = None

    def __post_init__(self):
        # display order is by answer letter
        object.__setattr__(self, "answers", sorted(self.answers, key=lambda a: a.letter))

    @property
    def correct_answer_ids(self) -> frozenset:
        return frozenset(a.id for a in self.answers if a.is_correct)

    @property
    def has_multiple_correct(self) -> bool:
        return len(self.correct_answer_ids) > 1


@dataclass(frozen=True)
class QuizDefinition:
    id: str
    title: str
    questions: List[QuestionDefinition]
    description: Optional[str] = None
    pass_percentage: int = 100
    content_id: Optional[str] = None


@dataclass(frozen=True)
class QuizAttempt:
    """One submitted answer; retries on a question append new entries"""
    question_id: str
    selected_answer_ids: frozenset
    is_correct: bool


@dataclass(frozen=True)
class QuizScore:
    correct: int
    total: int
    percentage: int
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct": self.correct,
            "total": self.total,
            "percentage": self.percentage,
            "passed": self.passed,
        }


def percentage_of(part: int, whole: int) -> int:
    """round(100 * part / whole), 0 when whole is 0"""
    if whole <= 0:
        return 0
    return int(round(100 * part / whole))


class QuizSession:
    """One user's sitting of one quiz"""

    def __init__(self, quiz: Optional[QuizDefinition] = None, now: Optional[datetime] = None):
        self.quiz: Optional[QuizDefinition] = None
        self.current_index = 0
        self.selected: List[str] = []
        self.attempts: List[QuizAttempt] = []
        self.show_feedback = False
        self.is_completed = False
        self.session_id = uuid.uuid4().hex
        self.started_at = now or utcnow()
        if quiz is not None:
            self.load(quiz)

    # ---- state ----

    @property
    def phase(self) -> SessionPhase:
        if self.quiz is None:
            return SessionPhase.LOADING
        if self.is_completed:
            return SessionPhase.COMPLETED
        return SessionPhase.IN_PROGRESS

    @property
    def question_phase(self) -> Optional[QuestionPhase]:
        if self.phase is not SessionPhase.IN_PROGRESS:
            return None
        if self.show_feedback:
            return QuestionPhase.FEEDBACK_SHOWN
        if self.selected:
            return QuestionPhase.ANSWERED_PENDING_FEEDBACK
        return QuestionPhase.UNANSWERED

    @property
    def current_question(self) -> Optional[QuestionDefinition]:
        if self.quiz is None or self.current_index >= len(self.quiz.questions):
            return None
        return self.quiz.questions[self.current_index]

    @property
    def last_attempt(self) -> Optional[QuizAttempt]:
        return self.attempts[-1] if self.attempts else None

    # ---- transitions ----

    def load(self, quiz: QuizDefinition) -> None:
        """Supply the quiz definition; loading -> in_progress"""
        self.quiz = quiz

    def select_answer(self, answer_id: str) -> None:
        """
        Toggle (multi-correct question) or replace (single-correct) the selection

        Ignored while feedback is shown, outside in_progress, or for an id
        that is not an option of the active question.
        """
        question = self.current_question
        if self.phase is not SessionPhase.IN_PROGRESS or question is None or self.show_feedback:
            return
        if answer_id not in {a.id for a in question.answers}:
            return

        if question.has_multiple_correct:
            if answer_id in self.selected:
                self.selected = [a for a in self.selected if a != answer_id]
            else:
                self.selected = self.selected + [answer_id]
        else:
            self.selected = [answer_id]

    def submit_answer(self) -> Optional[QuizAttempt]:
        """
        Grade the selection against the active question

        Correct only when the selected set equals the correct set exactly.
        Returns the appended attempt, or None if nothing was submitted.
        """
        question = self.current_question
        if self.phase is not SessionPhase.IN_PROGRESS or question is None:
            return None
        if not self.selected or self.show_feedback:
            return None

        selected = frozenset(self.selected)
        attempt = QuizAttempt(
            question_id=question.id,
            selected_answer_ids=selected,
            is_correct=selected == question.correct_answer_ids,
        )
        self.attempts.append(attempt)
        self.show_feedback = True
        return attempt

    def proceed(self) -> bool:
        """
        Move on after feedback

        Wrong answer: clear selection and feedback, stay on the question.
        Right answer: next question, or completed after the last one.

        Returns:
            bool: True when this call completed the session
        """
        if self.phase is not SessionPhase.IN_PROGRESS or not self.show_feedback:
            return False

        last = self.last_attempt
        self.selected = []
        self.show_feedback = False

        if last is None or not last.is_correct:
            return False

        if self.current_index + 1 < len(self.quiz.questions):
            self.current_index += 1
            return False

        self.is_completed = True
        return True

    def restart(self, now: Optional[datetime] = None) -> None:
        """Back to the first question with a new session id and start time"""
        self.current_index = 0
        self.selected = []
        self.attempts = []
        self.show_feedback = False
        self.is_completed = False
        self.session_id = uuid.uuid4().hex
        self.started_at = now or utcnow()

    # ---- derived values ----

    def progress_percentage(self) -> int:
        if self.quiz is None:
            return 0
        done = self.current_index + (1 if self.show_feedback else 0)
        return percentage_of(done, len(self.quiz.questions))

    def final_attempts(self) -> Dict[str, QuizAttempt]:
        """Latest attempt per question, in attempt order"""
        latest: Dict[str, QuizAttempt] = {}
        for attempt in self.attempts:
            latest[attempt.question_id] = attempt
        return latest

    def score(self) -> QuizScore:
        """Questions whose most recent attempt is correct, out of all questions"""
        if self.quiz is None:
            return QuizScore(correct=0, total=0, percentage=0, passed=False)

        total = len(self.quiz.questions)
        correct = sum(1 for a in self.final_attempts().values() if a.is_correct)
        percentage = percentage_of(correct, total)
        return QuizScore(
            correct=correct,
            total=total,
            percentage=percentage,
            passed=total > 0 and percentage >= self.quiz.pass_percentage,
        )

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        delta = (now or utcnow()) - self.started_at
        return max(int(round(delta.total_seconds())), 0)

    def to_dict(self) -> Dict[str, Any]:
        """Client view; correctness is revealed only after submission"""
        question = self.current_question
        question_view = None
        if question is not None and not self.is_completed:
            question_view = {
                "id": question.id,
                "text": question.text,
                "learning_outcome": question.learning_outcome,
                "multiple_correct": question.has_multiple_correct,
                "answers": [
                    {"id": a.id, "letter": a.letter, "text": a.text}
                    for a in question.answers
                ],
            }
            if self.show_feedback:
                question_view["explanation"] = question.explanation
                question_view["correct_answer_ids"] = sorted(question.correct_answer_ids)

        last = self.last_attempt
        return {
            "session_id": self.session_id,
            "quiz_id": self.quiz.id if self.quiz else None,
            "phase": self.phase.value,
            "question_phase": self.question_phase.value if self.question_phase else None,
            "current_index": self.current_index,
            "total_questions": len(self.quiz.questions) if self.quiz else 0,
            "selected_answer_ids": list(self.selected),
            "show_feedback": self.show_feedback,
            "last_attempt_correct": last.is_correct if (last and self.show_feedback) else None,
            "progress_percentage": self.progress_percentage(),
            "question": question_view,
            "score": self.score().to_dict() if self.is_completed else None,
            "started_at": self.started_at.isoformat(),
        }


class QuizSessionRegistry:
    """
    Process-local store of live quiz sessions

    Built once in main.py and kept on app.state; routers reach it through
    a dependency. Sessions are owned by the user that started them.

    Each lookup refreshes a session's last-touched time. Sessions idle for
    longer than idle_minutes are dropped whenever a new one is started.
    """

    def __init__(self, idle_minutes: float = 120):
        self.idle_timeout = timedelta(minutes=idle_minutes)
        # session_id -> (user_id, session, last_touched)
        self._sessions: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def start(self, user_id: str, quiz: QuizDefinition, now: Optional[datetime] = None) -> QuizSession:
        now = now or utcnow()
        self.evict_idle(now)
        session = QuizSession(quiz, now=now)
        with self._lock:
            self._sessions[session.session_id] = (user_id, session, now)
        return session

    def get(self, session_id: str, user_id: str, now: Optional[datetime] = None) -> Optional[QuizSession]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None or entry[0] != user_id:
                return None
            self._sessions[session_id] = (entry[0], entry[1], now or utcnow())
        return entry[1]

    def rekey(self, old_session_id: str, session: QuizSession) -> None:
        """Follow a restart, which assigns a new session id"""
        with self._lock:
            entry = self._sessions.pop(old_session_id, None)
            if entry is not None:
                self._sessions[session.session_id] = (entry[0], session, utcnow())

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def evict_idle(self, now: Optional[datetime] = None) -> int:
        """Drop sessions not touched within idle_timeout; returns how many"""
        cutoff = (now or utcnow()) - self.idle_timeout
        with self._lock:
            stale = [sid for sid, entry in self._sessions.items() if entry[2] < cutoff]
            for sid in stale:
                del self._sessions[sid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
