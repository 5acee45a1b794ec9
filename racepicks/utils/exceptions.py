"""
Custom exceptions for the scoring engine with user-friendly error messages.
"""

from typing import List


class RacePicksException(Exception):
    """Base exception for scoring and leaderboard errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class PredictionValidationError(RacePicksException):
    """Raised when a prediction is rejected before scoring."""
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            f"Invalid prediction: {'; '.join(self.errors)}",
            f"❌ {self.errors[0]}" if self.errors else "❌ Invalid prediction"
        )

class RaceNotFoundError(RacePicksException):
    """Raised when a race does not exist in the store."""
    def __init__(self, race_id: str):
        super().__init__(
            f"Race '{race_id}' not found",
            "❌ That race could not be found!"
        )

class ScoreStateError(RacePicksException):
    """Raised on an illegal score lifecycle transition."""
    def __init__(self, current: str, action: str):
        super().__init__(
            f"Cannot {action} a score in state '{current}'",
            "❌ This score cannot be changed right now."
        )

class DatabaseError(RacePicksException):
    """Raised when database operations fail."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "❌ Database error occurred. Please try again later."
        )

class TransactionError(RacePicksException):
    """Raised when a race batch cannot be published."""
    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Transaction failed for {operation} after {attempts} attempts",
            "❌ Failed to publish scores. Please try again."
        )

class UserNotFoundError(RacePicksException):
    """Raised when a user profile does not exist."""
    def __init__(self, user_id: str):
        super().__init__(
            f"User '{user_id}' not found",
            "❌ That user could not be found!"
        )
