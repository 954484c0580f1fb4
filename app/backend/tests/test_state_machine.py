"""
Test the submission lifecycle transition table and override rules.
"""

import pytest

from campaign_rewards.models.submission import (
    CREATION_STATUSES,
    PAYABLE_STATUSES,
    TERMINAL_STATUSES,
    SubmissionStatus,
    can_override,
    can_transition,
    evaluated_status,
)

S = SubmissionStatus


def test_terminal_and_payable_sets():
    assert TERMINAL_STATUSES == {S.PAID, S.REJECTED}
    assert PAYABLE_STATUSES == {S.ELIGIBLE, S.WINNER}
    assert S.PENDING not in CREATION_STATUSES
    assert S.PAID.is_terminal and not S.WINNER.is_terminal
    assert S.WINNER.is_payable and not S.PENDING.is_payable


@pytest.mark.parametrize("eligible,expected", [(True, S.ELIGIBLE), (False, S.REJECTED)])
def test_evaluated_status_follows_the_table(eligible, expected):
    status = evaluated_status(eligible)
    assert status is expected
    assert can_transition(S.PENDING, status)


def test_payable_rows_are_those_that_can_be_paid():
    for status in S:
        assert status.is_payable == can_transition(status, S.PAID)


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.ELIGIBLE),
    (S.PENDING, S.REJECTED),
    (S.ELIGIBLE, S.WINNER),
    (S.ELIGIBLE, S.PAID),
    (S.WINNER, S.PAID),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (S.PAID, S.ELIGIBLE),
    (S.PAID, S.REJECTED),
    (S.REJECTED, S.ELIGIBLE),
    (S.WINNER, S.ELIGIBLE),
    (S.PENDING, S.PAID),
])
def test_forbidden_transitions(current, target):
    assert not can_transition(current, target)


def test_override_never_changes_terminal_rows():
    for target in S:
        if target == S.REJECTED:
            continue
        assert not can_override(S.REJECTED, target)
    for target in S:
        if target == S.PAID:
            continue
        assert not can_override(S.PAID, target)


def test_override_cannot_pay():
    for current in (S.PENDING, S.ELIGIBLE, S.WINNER):
        assert not can_override(current, S.PAID)


def test_override_moves_open_rows_anywhere_else():
    assert can_override(S.ELIGIBLE, S.PENDING)
    assert can_override(S.WINNER, S.REJECTED)
    assert can_override(S.PENDING, S.WINNER)


def test_same_value_override_is_allowed():
    for status in S:
        assert can_override(status, status)


def test_parse_rejects_unknown_values():
    assert S.parse("winner") is S.WINNER
    with pytest.raises(ValueError, match="Allowed"):
        S.parse("approved")
