"""Per-round lock deciding which event ends a round."""

import logging
from dataclasses import dataclass
from enum import StrEnum

_logger = logging.getLogger(__name__)


class TransitionKind(StrEnum):
    """Events that can end a round."""

    SUBMIT = "submit"
    TIMEOUT = "timeout"
    ABANDON = "abandon"


@dataclass
class TransitionGuard:
    """First terminal transition wins; every later attempt is a no-op."""

    is_navigating_away: bool = False
    has_terminal_transition_occurred: bool = False
    has_timeout_fired: bool = False
    terminal_kind: TransitionKind | None = None

    def try_enter_terminal_transition(self, kind: TransitionKind) -> bool:
        """Claim the round's terminal transition; True only for the first caller."""
        if self.has_terminal_transition_occurred:
            _logger.debug(
                "Dropping %s transition; round already ended by %s",
                kind,
                self.terminal_kind,
            )
            return False
        self.has_terminal_transition_occurred = True
        self.terminal_kind = kind
        return True

    def note_timeout(self) -> bool:
        """Record a timer expiry; True only the first time in a round."""
        if self.has_timeout_fired:
            return False
        self.has_timeout_fired = True
        return True

    def mark_navigating_away(self) -> None:
        """Suppress timer-driven transitions while the round is off screen."""
        self.is_navigating_away = True

    def clear_navigating_away(self) -> None:
        self.is_navigating_away = False

    def reset(self) -> None:
        """Prepare the guard for a new round."""
        self.is_navigating_away = False
        self.has_terminal_transition_occurred = False
        self.has_timeout_fired = False
        self.terminal_kind = None
