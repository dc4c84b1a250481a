from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from lpstake.ledger.constants import DEFAULT_CUSTODY_ID, DEFAULT_LEDGER_ID
from lpstake.ledger.state import LedgerState, LedgerView
from lpstake.runtime.apply.admin import (
    apply_configure,
    apply_decommission,
    apply_enable_early_exit,
    apply_withdraw_surplus,
    keep_decommissioned,
    keep_surplus_paid,
)
from lpstake.runtime.apply.staking import (
    apply_deposit,
    apply_withdraw_at_release,
    apply_withdraw_early,
    check_deposit,
    keep_early_exit_paid,
    keep_principal_paid,
    keep_reward_paid,
)
from lpstake.runtime.auth import CallContext, require_caller
from lpstake.runtime.epoch_phase import Phase, phase_at
from lpstake.runtime.errors import ConfigurationError, ExternalCallFailure, InvariantViolation, LedgerError
from lpstake.runtime.ledger_config import LedgerConfig, load_ledger_config
from lpstake.runtime.ledger_logging import log_event
from lpstake.runtime.single_writer import SingleWriterLock
from lpstake.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from lpstake.runtime.staging import CallJournal
from lpstake.services.interfaces import LiquidityPoolOracle, ServiceDirectory, TransferableBalanceLedger
from lpstake.services.memory import InMemoryServiceDirectory

Json = Dict[str, Any]

# (label, asset_ref, amount, state effect kept if the transfer cannot be undone)
Payout = Tuple[str, str, int, Optional[Callable[[LedgerState], None]]]

_log = logging.getLogger("lpstake.ledger")

def _wall_clock() -> int:
    return int(time.time())

class StakingExecutor:
    """Owns one staking ledger and runs every entry point against it.

    Each mutating call holds the single-writer lock for its whole duration
    (external transfers included) and runs inside a CallJournal, so a failure
    anywhere restores the pre-call state and reverses issued transfers.
    """

    def __init__(
        self,
        *,
        directory: ServiceDirectory,
        administrator: str,
        custody_id: str = DEFAULT_CUSTODY_ID,
        ledger_id: str = DEFAULT_LEDGER_ID,
        clock: Optional[Callable[[], int]] = None,
        store: Optional[SqliteLedgerStore] = None,
        lock_timeout_s: float = 30.0,
    ) -> None:
        self.ledger_id = str(ledger_id)
        self.custody_id = str(custody_id)
        self.administrator = str(administrator or "").strip()
        if not self.administrator:
            raise ConfigurationError("missing_administrator", "an administrator identity is required", {})

        self._directory = directory
        self._clock = clock or _wall_clock
        self._store = store
        self._lock = SingleWriterLock(timeout_s=lock_timeout_s)

        if self._store is not None and self._store.exists():
            self.state = LedgerState.from_json(self._store.read())
        else:
            self.state = LedgerState()
            if self._store is not None:
                self._store.write(self.state.to_json())

    # ----------------------------
    # Read surface
    # ----------------------------

    def now(self) -> int:
        return int(self._clock())

    def phase(self) -> Phase:
        return phase_at(self.state.configuration, self.now())

    def view(self) -> LedgerView:
        return LedgerView.from_state(self.state, phase=self.phase().value)

    def read_state(self) -> Json:
        return self.state.to_json()

    # ----------------------------
    # Service lookups
    # ----------------------------

    def _token(self, ref: str) -> TransferableBalanceLedger:
        try:
            return self._directory.token(ref)
        except KeyError as e:
            raise ConfigurationError("unknown_asset", "asset is not known to the service directory", {"asset_ref": ref}) from e

    def _oracle(self, ref: str) -> LiquidityPoolOracle:
        try:
            return self._directory.oracle(ref)
        except KeyError as e:
            raise ConfigurationError("unknown_asset", "no pool oracle for the liquidity token", {"asset_ref": ref}) from e

    def _is_live(self, ref: str) -> bool:
        try:
            return bool(self._directory.is_live(ref))
        except Exception as e:
            raise ExternalCallFailure("liveness_check_failed", "existence predicate raised", {"asset_ref": ref, "error": str(e)}) from e

    def _custody_balance(self, ref: str) -> int:
        token = self._token(ref)
        try:
            return int(token.balance_of(self.custody_id))
        except LedgerError:
            raise
        except Exception as e:
            raise ExternalCallFailure("balance_query_failed", "balance_of raised", {"asset_ref": ref, "error": str(e)}) from e

    # ----------------------------
    # Call wrapper
    # ----------------------------

    @contextmanager
    def _call(self, operation: str, ctx: CallContext) -> Iterator[CallJournal]:
        caller = str(getattr(ctx, "caller", "") or "")
        try:
            self._lock.acquire(operation)
        except LedgerError as e:
            log_event(_log, "ledger_call_rejected", ledger_id=self.ledger_id, operation=operation, caller=caller, error=e.to_json())
            raise

        try:
            journal = CallJournal(self.state, operation=operation)
            try:
                yield journal
                self.state.check_invariants()
                if self._store is not None:
                    self._store.write(self.state.to_json())
            except Exception as e:
                self._abort(journal, operation, caller, e)
                raise
            journal.commit()
            log_event(
                _log,
                "ledger_call_committed",
                ledger_id=self.ledger_id,
                operation=operation,
                caller=caller,
                transfers=journal.transfers,
                config_version=int(self.state.config_version),
            )
        finally:
            self._lock.release()

    def _persist_after_rollback(self, operation: str) -> None:
        if self._store is None:
            return
        try:
            self._store.write(self.state.to_json())
        except Exception as e:
            log_event(
                _log,
                "ledger_persist_failed",
                level=logging.ERROR,
                ledger_id=self.ledger_id,
                operation=operation,
                error=str(e),
            )

    def _abort(self, journal: CallJournal, operation: str, caller: str, err: Exception) -> None:
        issued = journal.issued
        failed = journal.rollback()
        error = err.to_json() if isinstance(err, LedgerError) else {"kind": type(err).__name__, "message": str(err)}

        if failed:
            # Kept payout effects differ from what the store holds.
            self._persist_after_rollback(operation)
            log_event(
                _log,
                "ledger_rollback_incomplete",
                level=logging.ERROR,
                ledger_id=self.ledger_id,
                operation=operation,
                caller=caller,
                error=error,
                failed=failed,
            )
            raise ExternalCallFailure(
                "rollback_incomplete",
                "call failed and some issued transfers could not be reversed",
                {"operation": operation, "cause": error, "failed": failed},
            ) from err

        event = "ledger_call_rolled_back" if issued else "ledger_call_rejected"
        log_event(_log, event, ledger_id=self.ledger_id, operation=operation, caller=caller, error=error, reversed=issued)

    # ----------------------------
    # Participant entry points
    # ----------------------------

    def deposit(self, ctx: CallContext, amount: Any) -> Json:
        with self._call("deposit", ctx) as journal:
            account = require_caller(ctx)
            cfg = check_deposit(self.state, amount=amount, now_s=self.now())
            amt = int(amount)
            lp = self._token(cfg.liquidity_token_ref)

            journal.transfer(
                "liquidity_in",
                lambda: lp.transfer_from(account, self.custody_id, amt),
                undo=lambda: lp.transfer(account, amt),
                details={"asset_ref": cfg.liquidity_token_ref, "from": account, "amount": amt},
            )
            meta = apply_deposit(self.state, account, amt, oracle=self._oracle(cfg.liquidity_token_ref))
        return {**meta, "transfers": journal.transfers}

    def withdraw_at_release(self, ctx: CallContext) -> Json:
        with self._call("withdraw_at_release", ctx) as journal:
            account = require_caller(ctx)
            meta = apply_withdraw_at_release(self.state, account, now_s=self.now())
            cfg = self.state.configuration
            principal, reward = int(meta["principal"]), int(meta["reward"])
            keep_principal = partial(keep_principal_paid, account=account, amount=principal)
            keep_reward = partial(keep_reward_paid, account=account, amount=reward)
            self._pay_out(
                journal,
                account,
                [
                    ("principal_out", cfg.liquidity_token_ref, principal, keep_principal),
                    ("reward_out", cfg.reward_token_ref, reward, keep_reward),
                ],
            )
        return {**meta, "transfers": journal.transfers}

    def withdraw_early(self, ctx: CallContext) -> Json:
        with self._call("withdraw_early", ctx) as journal:
            account = require_caller(ctx)
            meta = apply_withdraw_early(self.state, account)
            cfg = self.state.configuration
            if cfg is not None:
                principal = int(meta["principal"])
                keep = partial(keep_early_exit_paid, account=account, amount=principal)
                self._pay_out(journal, account, [("principal_out", cfg.liquidity_token_ref, principal, keep)])
        return {**meta, "transfers": journal.transfers}

    def _pay_out(self, journal: CallJournal, to: str, legs: List[Payout]) -> None:
        """Transfer custody funds out; state must already reflect the payout.

        Every leg is checked against custody before the first transfer is
        issued. Zero legs are skipped.
        """
        legs = [leg for leg in legs if int(leg[2]) > 0]
        needed: Dict[str, int] = {}
        for _, asset_ref, amount, _ in legs:
            needed[asset_ref] = needed.get(asset_ref, 0) + int(amount)
        for asset_ref, amount in needed.items():
            held = self._custody_balance(asset_ref)
            if held < amount:
                raise InvariantViolation(
                    "custody_shortfall",
                    "custody does not hold enough to cover the payout",
                    {"asset_ref": asset_ref, "needed": amount, "held": held},
                )

        for label, asset_ref, amount, keep in legs:
            token = self._token(asset_ref)
            journal.transfer(
                label,
                lambda token=token, amount=amount: token.transfer(to, amount),
                undo=lambda token=token, amount=amount: token.transfer_from(to, self.custody_id, amount),
                details={"asset_ref": asset_ref, "to": to, "amount": amount},
                keep=keep,
            )

    # ----------------------------
    # Administrator entry points
    # ----------------------------

    def configure(
        self,
        ctx: CallContext,
        *,
        start_time: int,
        close_time: int,
        release_time: int,
        percentage_yield: int,
        liquidity_token_ref: str,
        reward_token_ref: str,
    ) -> Json:
        with self._call("configure", ctx) as journal:
            meta = apply_configure(
                self.state,
                ctx,
                administrator=self.administrator,
                now_s=self.now(),
                start_time=start_time,
                close_time=close_time,
                release_time=release_time,
                percentage_yield=percentage_yield,
                liquidity_token_ref=liquidity_token_ref,
                reward_token_ref=reward_token_ref,
                is_live=self._is_live,
                reward_balance=lambda: self._custody_balance(str(reward_token_ref)),
            )
        return {**meta, "transfers": journal.transfers}

    def withdraw_surplus(self, ctx: CallContext, asset_ref: str, amount: Any) -> Json:
        with self._call("withdraw_surplus", ctx) as journal:
            ref = str(asset_ref or "").strip()
            meta = apply_withdraw_surplus(
                self.state,
                ctx,
                administrator=self.administrator,
                asset_ref=asset_ref,
                amount=amount,
                custody_balance=lambda: self._custody_balance(ref),
            )
            amt = int(meta["amount"])
            keep = partial(keep_surplus_paid, amount=amt) if meta["tracked"] else None
            self._pay_out(journal, self.administrator, [("surplus_out", ref, amt, keep)])
        return {**meta, "transfers": journal.transfers}

    def enable_early_exit(self, ctx: CallContext) -> Json:
        with self._call("enable_early_exit", ctx) as journal:
            meta = apply_enable_early_exit(self.state, ctx, administrator=self.administrator)
        return {**meta, "transfers": journal.transfers}

    def decommission(self, ctx: CallContext) -> Json:
        with self._call("decommission", ctx) as journal:
            cfg = self.state.configuration
            meta = apply_decommission(
                self.state,
                ctx,
                administrator=self.administrator,
                reward_balance=lambda: self._custody_balance(cfg.reward_token_ref),
                liquidity_balance=lambda: self._custody_balance(cfg.liquidity_token_ref),
            )
            if cfg is not None:
                # A sweep that cannot be pulled back leaves the ledger terminal.
                self._pay_out(
                    journal,
                    self.administrator,
                    [
                        ("reward_sweep", cfg.reward_token_ref, int(meta["reward_sweep"]), keep_decommissioned),
                        ("liquidity_sweep", cfg.liquidity_token_ref, int(meta["liquidity_sweep"]), keep_decommissioned),
                    ],
                )
        return {**meta, "transfers": journal.transfers}

    # ----------------------------
    # Construction
    # ----------------------------

    @classmethod
    def from_config(
        cls,
        cfg: LedgerConfig,
        *,
        directory: Optional[ServiceDirectory] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "StakingExecutor":
        store: Optional[SqliteLedgerStore] = None
        if cfg.db_path:
            store = SqliteLedgerStore(db=SqliteDB(path=cfg.db_path), ledger_id=cfg.ledger_id)
        if directory is None:
            directory = InMemoryServiceDirectory.from_config(cfg.services, custody_id=cfg.custody_id)
        return cls(
            directory=directory,
            administrator=cfg.administrator,
            custody_id=cfg.custody_id,
            ledger_id=cfg.ledger_id,
            clock=clock,
            store=store,
            lock_timeout_s=float(cfg.lock_timeout_ms) / 1000.0,
        )

    @classmethod
    def from_env(cls) -> "StakingExecutor":
        return cls.from_config(load_ledger_config())
