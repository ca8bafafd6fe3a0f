"""
ledger.py - Stateful Token Ledger

The Ledger class is the central state manager for token balances and unit state.
It is the only module that mutates balances, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves and state changes, or none)
    - Maintains wallet balances and unit definitions
    - Provides the fungible-token interface: mint, transfer, total_supply
    - Tracks logical time used as the staking clock
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any
import copy

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction, TransactionOrigin, OriginType,
    ExecuteResult, RejectionReason,
    UnitState,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, InsufficientFunds, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    build_transaction, _freeze_state,
)


class Ledger:
    """
    Double-entry token ledger with full validation and audit trail.

    Issuance is a move out of SYSTEM_WALLET and retirement a move back into it,
    so the sum of every unit across all wallets, system included, is always zero.

    Thread Safety:
        Not thread-safe. Operations run to completion one at a time.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(token("STK", "Stake Token"))
        ledger.register_wallet("alice")
        ledger.mint("alice", "STK", 1_000_000)
        ledger.register_wallet("bob")
        ledger.transfer("alice", "bob", "STK", 250_000)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Enable debug output (default: True)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()  # For idempotency (content-based)
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._next_sequence: int = 0
        # Why the most recent execute() did not apply; cleared on every call
        self.last_rejection: str = ""
        self.last_rejection_reason: Optional[RejectionReason] = None

        # Auto-register the system wallet (used for issuance/retirement)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def total_supply(self, unit_symbol: str) -> int:
        """
        Circulating supply of a unit: the sum over every wallet except SYSTEM_WALLET.

        Equal to the negated system wallet balance while double entry holds.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that every unit nets to zero across all wallets, system included.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all units net to zero
            - 'supplies': Dict[str, int] - Circulating supply per unit
            - 'discrepancies': List[Dict] - unit and net imbalance for violations
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            supplies[unit_symbol] = self.total_supply(unit_symbol)
            net = sum(self.balances[w].get(unit_symbol, 0) for w in self.registered_wallets)
            if net != 0:
                discrepancies.append({'unit': unit_symbol, 'net': net})

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    # ========================================================================
    # FUNGIBLE TOKEN INTERFACE
    # ========================================================================

    def mint(self, wallet_id: str, unit_symbol: str, quantity: int) -> Transaction:
        """
        Issue new tokens from SYSTEM_WALLET to a wallet.

        Returns:
            The executed Transaction

        Raises:
            LedgerError: If the issuance is rejected
        """
        move = Move(quantity, unit_symbol, SYSTEM_WALLET, wallet_id,
                    f"mint_{wallet_id}_{self._next_sequence}")
        origin = TransactionOrigin(OriginType.SYSTEM, SYSTEM_WALLET, unit_symbol, "MINT")
        return self._execute_or_raise(build_transaction(self, [move], origin=origin))

    def transfer(self, source: str, dest: str, unit_symbol: str, quantity: int) -> Transaction:
        """
        Transfer tokens between two wallets.

        Returns:
            The executed Transaction

        Raises:
            InsufficientFunds: If the source cannot cover the transfer
            LedgerError: If the transfer is otherwise rejected
        """
        move = Move(quantity, unit_symbol, source, dest,
                    f"transfer_{source}_{dest}_{self._next_sequence}")
        origin = TransactionOrigin(OriginType.USER_ACTION, source, unit_symbol, "TRANSFER")
        return self._execute_or_raise(build_transaction(self, [move], origin=origin))

    def _execute_or_raise(self, pending: PendingTransaction) -> Transaction:
        result = self.execute(pending)
        if result == ExecuteResult.APPLIED:
            return self.transaction_log[-1]
        if self.last_rejection_reason is RejectionReason.INSUFFICIENT_FUNDS:
            raise InsufficientFunds(self.last_rejection)
        raise LedgerError(f"Transaction {pending.intent_id} {result.value}: {self.last_rejection}")

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes succeed together or none are applied.
        A pending transaction with an already-seen intent_id is not applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed (last_rejection_reason
            says why, last_rejection gives the detail)
        """
        self.last_rejection = ""
        self.last_rejection_reason = None
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            self.last_rejection = f"duplicate intent {pending.intent_id}"
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        reason, detail = self._validate_pending(pending)
        if reason is not None:
            self.last_rejection_reason = reason
            self.last_rejection = detail
            if self.verbose:
                print(f"REJECTED [{reason.value}]: {detail}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)

        # Unit is frozen, so state changes replace the Unit instance
        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(repr(tx))
        return ExecuteResult.APPLIED

    def _validate_pending(
        self, pending: PendingTransaction
    ) -> Tuple[Optional[RejectionReason], str]:
        """
        Validate pending transaction against all constraints.

        Checks performed, in order:
        1. Timestamp validation (transaction must not be from the future)
        2. Unit and wallet registration
        3. Optimistic concurrency: each state change's old_state matches the current state
        4. Net balance of every non-system wallet stays at or above the unit minimum

        Returns:
            (None, "") when valid, else the reason code and a readable detail
        """
        if pending.timestamp > self._current_time:
            return RejectionReason.FUTURE_TIMESTAMP, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return RejectionReason.UNIT_NOT_REGISTERED, f"unit not registered: {move.unit_symbol}"
            for wallet in (move.source, move.dest):
                if not self.is_registered(wallet):
                    return RejectionReason.WALLET_NOT_REGISTERED, f"wallet not registered: {wallet}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return RejectionReason.UNIT_NOT_REGISTERED, f"unit not registered: {sc.unit}"
            if sc.old_state is not None and sc.old_state != self.units[sc.unit].state:
                return RejectionReason.STALE_STATE, f"stale state for {sc.unit}"

        net: Dict[Tuple[str, str], int] = defaultdict(int)
        for move in pending.moves:
            net[(move.source, move.unit_symbol)] -= move.quantity
            net[(move.dest, move.unit_symbol)] += move.quantity

        # SYSTEM_WALLET is exempt from balance validation
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            minimum = self.units[unit_sym].min_balance
            proposed = self.balances[wallet][unit_sym] + delta
            if proposed < minimum:
                return (RejectionReason.INSUFFICIENT_FUNDS,
                        f"{wallet} {unit_sym}: {proposed} < min {minimum}")

        return None, ""

    def _execute_moves(self, moves) -> None:
        for move in moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a fully independent deep copy of this ledger.

        Used to evaluate what-if sequences without touching the live ledger.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned.units = dict(self.units)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned.last_rejection = self.last_rejection
        cloned.last_rejection_reason = self.last_rejection_reason
        cloned.balances = {
            wallet: defaultdict(int, bals) for wallet, bals in self.balances.items()
        }
        return cloned
