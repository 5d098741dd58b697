"""Tests for the round transition guard."""

from spotquest.services.guard import TransitionGuard, TransitionKind


def test_first_transition_wins() -> None:
    guard = TransitionGuard()

    assert guard.try_enter_terminal_transition(TransitionKind.SUBMIT) is True
    assert guard.try_enter_terminal_transition(TransitionKind.TIMEOUT) is False
    assert guard.try_enter_terminal_transition(TransitionKind.ABANDON) is False
    assert guard.terminal_kind is TransitionKind.SUBMIT


def test_timeout_is_noted_once() -> None:
    guard = TransitionGuard()

    assert guard.note_timeout() is True
    assert guard.note_timeout() is False
    assert guard.has_terminal_transition_occurred is False


def test_navigating_away_is_not_terminal() -> None:
    guard = TransitionGuard()

    guard.mark_navigating_away()

    assert guard.is_navigating_away is True
    assert guard.try_enter_terminal_transition(TransitionKind.ABANDON) is True

    guard.clear_navigating_away()
    assert guard.is_navigating_away is False


def test_reset_clears_every_flag() -> None:
    guard = TransitionGuard()
    guard.mark_navigating_away()
    guard.note_timeout()
    guard.try_enter_terminal_transition(TransitionKind.TIMEOUT)

    guard.reset()

    assert guard == TransitionGuard()
    assert guard.try_enter_terminal_transition(TransitionKind.SUBMIT) is True
