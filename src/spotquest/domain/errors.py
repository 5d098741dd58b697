"""Exception hierarchy for the game client."""


class SpotQuestError(Exception):
    """Base exception for all game client errors."""


class UnknownDifficultyError(SpotQuestError):
    """Raised when a difficulty key is not part of the fixed table."""

    def __init__(self, difficulty: object) -> None:
        self.difficulty = difficulty
        super().__init__(f"Unknown difficulty: {difficulty!r}")


class BackendError(SpotQuestError):
    """Raised when the game backend rejects a call."""

    def __init__(self, method: str, message: str) -> None:
        self.method = method
        self.message = message
        super().__init__(f"{method} failed: {message}")

    @property
    def session_already_ended(self) -> bool:
        """Return True when the backend reports the session as finished."""
        return "Session already ended" in self.message


class BackendUnavailableError(BackendError):
    """Raised when the backend could not be reached or answered with an HTTP error."""


class GuessValidationError(SpotQuestError):
    """Raised when a manual submit has no guess to send."""


class SessionStateError(SpotQuestError):
    """Raised when an operation is not allowed in the controller's current state."""


class HintError(SpotQuestError):
    """Base class for hint purchase failures."""


class InsufficientBalanceError(HintError):
    """Raised when the cached balance cannot cover a hint."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Hint costs {required} units but only {available} are available"
        )


class HintAlreadyUnlockedError(HintError):
    """Raised when a hint type was already bought this round."""


class HintPurchaseError(HintError):
    """Raised when the backend rejects a purchase or cannot be reached."""


class SessionReconciliationError(SpotQuestError):
    """Raised when local and backend session state cannot be reconciled."""

    user_message = "The game session ended unexpectedly. Please start a new game."

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} ended unexpectedly on the backend")
