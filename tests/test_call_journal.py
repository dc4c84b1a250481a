from __future__ import annotations

import pytest

from lpstake.ledger.state import LedgerState
from lpstake.runtime.errors import ExternalCallFailure, InvalidArgument
from lpstake.runtime.staging import CallJournal


def test_rollback_restores_snapshot_and_runs_undos_newest_first() -> None:
    st = LedgerState(rewards_amount=10)
    j = CallJournal(st, operation="test")
    order = []

    st.rewards_amount = 99
    st.account("alice").staked_amount = 5
    j.transfer("first", lambda: True, undo=lambda: order.append("first") or True, details={})
    j.transfer("second", lambda: True, undo=lambda: order.append("second") or True, details={})

    assert j.issued == 2
    assert j.rollback() == []
    assert order == ["second", "first"]
    assert st.rewards_amount == 10
    assert st.accounts == {}


def test_transfer_failures_become_external_call_failures() -> None:
    j = CallJournal(LedgerState(), operation="test")

    with pytest.raises(ExternalCallFailure) as e:
        j.transfer("nope", lambda: False, undo=lambda: True, details={"amount": 1})
    assert e.value.code == "transfer_rejected"
    assert e.value.details["label"] == "nope"

    def _boom() -> bool:
        raise RuntimeError("connection reset")

    with pytest.raises(ExternalCallFailure) as e:
        j.transfer("boom", _boom, undo=lambda: True, details={})
    assert e.value.code == "transfer_failed"

    def _ledger_error() -> bool:
        raise InvalidArgument("x", "passes through", {})

    with pytest.raises(InvalidArgument):
        j.transfer("inner", _ledger_error, undo=lambda: True, details={})

    assert j.issued == 0


def test_rollback_reports_failed_compensations() -> None:
    j = CallJournal(LedgerState(), operation="test")

    def _raise() -> bool:
        raise RuntimeError("gone")

    j.transfer("a", lambda: True, undo=lambda: False, details={})
    j.transfer("b", lambda: True, undo=_raise, details={})

    failed = j.rollback()
    assert [f["label"] for f in failed] == ["b", "a"]
    assert failed[0]["error"] == "gone"


def test_commit_discards_compensations() -> None:
    j = CallJournal(LedgerState(), operation="test")
    j.transfer("a", lambda: True, undo=lambda: pytest.fail("must not run"), details={})
    j.commit()
    assert j.rollback() == []
    with pytest.raises(RuntimeError):
        j.transfer("late", lambda: True, undo=lambda: True, details={})


def test_rollback_keeps_effect_of_unreversible_transfer() -> None:
    st = LedgerState(rewards_amount=10)
    st.account("alice").staked_amount = 5
    j = CallJournal(st, operation="test")

    st.account("alice").staked_amount = 0
    st.rewards_amount = 4

    def _keep(state: LedgerState) -> None:
        state.account("alice").staked_amount -= 5

    j.transfer("paid", lambda: True, undo=lambda: False, details={"amount": 5}, keep=_keep)
    j.transfer("other", lambda: True, undo=lambda: True, details={})

    failed = j.rollback()
    assert failed == [{"label": "paid", "amount": 5, "kept": True}]
    assert st.account("alice").staked_amount == 0
    assert st.rewards_amount == 10
