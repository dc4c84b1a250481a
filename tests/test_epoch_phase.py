from __future__ import annotations

import pytest

from lpstake.ledger.state import Configuration
from lpstake.runtime.epoch_phase import Phase, deny_unless_phase, phase_at, validate_schedule
from lpstake.runtime.errors import ConfigurationError, PhaseViolation


def _cfg() -> Configuration:
    return Configuration(
        start_time=100,
        close_time=200,
        release_time=300,
        percentage_yield=80,
        liquidity_token_ref="LP",
        reward_token_ref="RWD",
    )


def test_unconfigured_ledger_is_unstarted() -> None:
    assert phase_at(None, 10**9) is Phase.UNSTARTED


@pytest.mark.parametrize(
    "now,expected",
    [
        (99, Phase.UNSTARTED),
        (100, Phase.OPEN),
        (199, Phase.OPEN),
        (200, Phase.CLOSED),
        (299, Phase.CLOSED),
        (300, Phase.RELEASABLE),
        (10**9, Phase.RELEASABLE),
    ],
)
def test_phase_boundaries(now: int, expected: Phase) -> None:
    assert phase_at(_cfg(), now) is expected


@pytest.mark.parametrize(
    "start,close,release",
    [(100, 100, 300), (100, 300, 200), (300, 200, 100), (100, 200, 200)],
)
def test_schedule_must_be_strictly_increasing(start: int, close: int, release: int) -> None:
    with pytest.raises(ConfigurationError) as e:
        validate_schedule(start, close, release)
    assert e.value.code == "invalid_schedule"


def test_schedule_rejects_non_int_timestamps() -> None:
    with pytest.raises(ConfigurationError):
        validate_schedule(100, "200", 300)  # type: ignore[arg-type]
    with pytest.raises(ConfigurationError):
        validate_schedule(True, 200, 300)  # type: ignore[arg-type]


def test_deny_unless_phase_reports_phase_details() -> None:
    with pytest.raises(PhaseViolation) as e:
        deny_unless_phase(_cfg(), 250, (Phase.OPEN,), operation="deposit")

    err = e.value
    assert err.code == "wrong_phase"
    assert err.details["phase"] == "closed"
    assert err.details["allowed"] == ["open"]
    assert err.details["operation"] == "deposit"

    assert deny_unless_phase(_cfg(), 150, (Phase.OPEN,), operation="deposit") is Phase.OPEN
