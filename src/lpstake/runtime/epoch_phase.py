# src/lpstake/runtime/epoch_phase.py

from __future__ import annotations

"""Epoch phase helpers.

A staking ledger moves through four phases, driven only by time:

  UNSTARTED   now < start_time (or the ledger is not configured)
  OPEN        start_time <= now < close_time     deposits permitted
  CLOSED      close_time <= now < release_time   nothing moves
  RELEASABLE  now >= release_time                principal + reward withdrawable

There is no transition call. Every entry point evaluates the phase against
the executor clock at call time; nothing is cached.

This module provides:
  - phase_at: map (configuration, now) to a Phase
  - validate_schedule: timestamp ordering check used by configure
  - deny_unless_phase: canonical gate used by apply modules
"""

import enum
from typing import Iterable, Optional

from lpstake.ledger.state import Configuration
from lpstake.runtime.errors import ConfigurationError, PhaseViolation


class Phase(str, enum.Enum):
    UNSTARTED = "unstarted"
    OPEN = "open"
    CLOSED = "closed"
    RELEASABLE = "releasable"


def phase_at(configuration: Optional[Configuration], now_s: int) -> Phase:
    """Return the phase for now_s under configuration."""

    if configuration is None:
        return Phase.UNSTARTED

    now = int(now_s)
    if now < int(configuration.start_time):
        return Phase.UNSTARTED
    if now < int(configuration.close_time):
        return Phase.OPEN
    if now < int(configuration.release_time):
        return Phase.CLOSED
    return Phase.RELEASABLE


def validate_schedule(start_time: int, close_time: int, release_time: int) -> None:
    """Raise ConfigurationError unless start_time < close_time < release_time."""

    for name, v in (("start_time", start_time), ("close_time", close_time), ("release_time", release_time)):
        if isinstance(v, bool) or not isinstance(v, int):
            raise ConfigurationError("invalid_schedule", f"{name} must be an int", {name: v})

    if not (int(start_time) < int(close_time) < int(release_time)):
        raise ConfigurationError(
            "invalid_schedule",
            "require start_time < close_time < release_time",
            {"start_time": start_time, "close_time": close_time, "release_time": release_time},
        )


def deny_unless_phase(
    configuration: Optional[Configuration],
    now_s: int,
    allowed: Iterable[Phase],
    *,
    operation: str,
) -> Phase:
    """Raise PhaseViolation if the current phase is not one of allowed.

    Returns the current phase on success so callers can log it.
    """

    allowed_set = frozenset(allowed)
    current = phase_at(configuration, now_s)
    if current not in allowed_set:
        raise PhaseViolation(
            "wrong_phase",
            f"{operation} is not permitted in phase {current.value}",
            {
                "operation": operation,
                "phase": current.value,
                "allowed": sorted(p.value for p in allowed_set),
                "now": int(now_s),
            },
        )
    return current


__all__ = ["Phase", "phase_at", "validate_schedule", "deny_unless_phase"]
