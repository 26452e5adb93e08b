"""
Service-level error types

Services raise these; routers translate them into HTTP responses.
"""
from typing import Any, Dict, Optional


class CPDError(Exception):
    """Base error for quiz, completion and progress services"""


class ValidationError(CPDError, ValueError):
    """Malformed submission (bad percentage, empty answers, unknown question)"""


class NotFoundError(CPDError):
    """Quiz, completion or progress row does not exist"""


class UnauthenticatedError(CPDError):
    """No caller identity supplied"""


class PolicyDeniedError(CPDError):
    """
    Attempt blocked by the continuation policy

    Carries the same status payload the attempt-status endpoint returns,
    so the caller can render the countdown.
    """

    def __init__(self, status):
        self.status = status
        super().__init__(status.message)

    def to_dict(self) -> Dict[str, Any]:
        return self.status.to_dict()


class StoreError(CPDError):
    """Persistence failure, tagged with the operation that hit it"""

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        self.operation = operation
        self.original = original
        super().__init__(f"Store operation failed: {operation}")
