"""
Interest Ledger Engine

Core of the system. Each account stores a settled principal, the per-second
rate it locked in when it was last funded from empty, and the time it was
last settled. The current balance is computed: principal plus linear
interest since the last settlement. Every balance-changing call first folds
accrued interest into the principal of each account it touches.

The global rate only ever decreases. It is stamped onto accounts as they go
from empty to funded, and never reaches accounts that are already funded.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple

from .access import AccessGate
from .audit import AuditTrail, AuditEventType
from .clock import Clock, SystemClock
from .errors import LedgerError, InsufficientBalanceError, InvalidAmountError, RateMonotonicityError
from .fixed_point import MAX_AMOUNT, accrued_interest, validate_amount, validate_rate
from .logging_config import get_logger, log_action
from .storage import StorageInterface


logger = get_logger("interest_ledger.ledger")


@dataclass
class AccountRecord:
    """
    Stored state of one holder

    principal excludes interest accrued since last_accrual_time.
    """
    holder: str
    principal: int = 0
    rate: int = 0
    last_accrual_time: int = 0

    def settled(self, now: int) -> Tuple['AccountRecord', int]:
        """
        Project this record to time now.

        Returns the settled copy and the interest folded in. A clock reading
        at or before last_accrual_time leaves the record as it is.
        """
        elapsed = now - self.last_accrual_time
        if elapsed <= 0:
            return AccountRecord(**asdict(self)), 0
        interest = accrued_interest(self.principal, self.rate, elapsed)
        return AccountRecord(
            holder=self.holder,
            principal=self.principal + interest,
            rate=self.rate,
            last_accrual_time=now
        ), interest

    @property
    def is_empty(self) -> bool:
        return self.principal == 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccountRecord':
        return cls(
            holder=data['holder'],
            principal=int(data['principal']),
            rate=int(data['rate']),
            last_accrual_time=int(data['last_accrual_time'])
        )


@dataclass
class LedgerState:
    """Global record: the decrease-only rate and the settled supply"""
    address: str
    current_rate: int
    total_supply: int = 0
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerState':
        return cls(
            address=data['address'],
            current_rate=int(data['current_rate']),
            total_supply=int(data['total_supply']),
            created_at=data.get('created_at')
        )


class InterestLedger:
    """
    Interest-accruing ledger

    Every mutating call runs inside one storage unit of work, so it either
    commits in full or leaves no trace. The storage lock orders calls.
    """

    def __init__(
        self,
        storage: StorageInterface,
        access_gate: AccessGate,
        address: str = "interest-ledger",
        initial_rate: Optional[int] = None,
        clock: Optional[Clock] = None,
        audit_trail: Optional[AuditTrail] = None
    ):
        self.storage = storage
        self.access_gate = access_gate
        self.clock = clock or SystemClock()
        self.audit_trail = audit_trail or AuditTrail(storage)
        self._address = address

        self.accounts_table = "ledger_accounts"
        self.state_table = "ledger_state"

        with self.storage.atomic():
            if self.storage.load(self.state_table, address) is None:
                if initial_rate is None:
                    raise ValueError(f"Ledger '{address}' does not exist and no initial rate was given")
                validate_rate(initial_rate)
                state = LedgerState(
                    address=address,
                    current_rate=initial_rate,
                    created_at=datetime.now(timezone.utc).isoformat()
                )
                self._save_state(state)
                self.audit_trail.log_event(
                    event_type=AuditEventType.LEDGER_INITIALIZED,
                    entity_type="ledger",
                    entity_id=address,
                    metadata={"initial_rate": initial_rate}
                )

    @property
    def address(self) -> str:
        """Identity of this ledger, fixed at construction"""
        return self._address

    # Queries

    def balance_of(self, holder: str, at: Optional[int] = None) -> int:
        """
        Balance as it would be after settling at time at (default: now).

        Uses the same projection as the mutating path, so a settle at the
        same instant yields exactly this value.
        """
        when = self.clock.now() if at is None else at
        with self.storage.lock:
            account = self._load_account(holder)
        settled, _ = account.settled(when)
        return settled.principal

    def principal_balance_of(self, holder: str) -> int:
        """Stored principal, without projecting accrued interest"""
        with self.storage.lock:
            return self._load_account(holder).principal

    def get_interest_rate(self) -> int:
        """Current global per-second rate"""
        with self.storage.lock:
            return self._load_state().current_rate

    def total_supply(self) -> int:
        """Sum of all settled principals"""
        with self.storage.lock:
            return self._load_state().total_supply

    def get_account(self, holder: str) -> Optional[AccountRecord]:
        """Stored record for holder, or None if it was never funded"""
        with self.storage.lock:
            data = self.storage.load(self.accounts_table, holder)
        return AccountRecord.from_dict(data) if data else None

    # Supply operations

    def mint(self, caller: str, to: str, amount: int, rate: int) -> AccountRecord:
        """
        Create amount units for to.

        Args:
            caller: Identity requesting the mint; needs supply control
            to: Recipient holder
            amount: Units to create, positive
            rate: Rate stamped onto to if it is empty before this mint

        Returns:
            The recipient's record after the mint

        Raises:
            AuthorizationError: Caller lacks supply control
            InvalidAmountError: Amount or rate out of range
        """
        try:
            with self.storage.atomic():
                self.access_gate.require_supply_control(caller)
                validate_amount(amount)
                validate_rate(rate)
                now = self.clock.now()
                state = self._load_state()
                account, interest = self._load_account(to).settled(now)

                stamped = account.is_empty
                if stamped:
                    account.rate = rate
                    account.last_accrual_time = now

                account.principal += amount
                if account.principal > MAX_AMOUNT or state.total_supply + interest + amount > MAX_AMOUNT:
                    raise InvalidAmountError(f"Minting {amount} would overflow the unsigned range")
                state.total_supply += interest + amount

                self._save_account(account)
                self._save_state(state)
                self.audit_trail.log_event(
                    event_type=AuditEventType.MINTED,
                    entity_type="account",
                    entity_id=to,
                    caller=caller,
                    metadata={
                        "amount": amount,
                        "interest_settled": interest,
                        "rate_stamped": stamped,
                        "rate": account.rate,
                        "principal": account.principal
                    }
                )
        except LedgerError as e:
            self._log_rejection("mint", caller, to, e)
            raise

        log_action(logger, "info", "Minted", caller=caller, action="mint", resource=to,
                   extra={"amount": str(amount), "principal": str(account.principal)})
        return account

    def burn(self, caller: str, holder: str, amount: int) -> int:
        """
        Destroy amount units held by holder.

        MAX_AMOUNT means the holder's whole balance, resolved after the
        holder is settled. Over-large requests fail rather than being
        capped.

        Returns:
            The amount actually burned

        Raises:
            AuthorizationError: Caller lacks supply control
            InvalidAmountError: Amount is not positive, or resolves to zero
            InsufficientBalanceError: Amount exceeds the settled principal
        """
        try:
            with self.storage.atomic():
                self.access_gate.require_supply_control(caller)
                validate_amount(amount, allow_max=True)
                now = self.clock.now()
                state = self._load_state()
                account, interest = self._load_account(holder).settled(now)

                if amount == MAX_AMOUNT:
                    amount = account.principal
                    if amount == 0:
                        raise InvalidAmountError(f"Nothing to burn for '{holder}'")
                if amount > account.principal:
                    raise InsufficientBalanceError(holder, amount, account.principal)

                account.principal -= amount
                state.total_supply = state.total_supply + interest - amount

                self._save_account(account)
                self._save_state(state)
                self.audit_trail.log_event(
                    event_type=AuditEventType.BURNED,
                    entity_type="account",
                    entity_id=holder,
                    caller=caller,
                    metadata={
                        "amount": amount,
                        "interest_settled": interest,
                        "principal": account.principal
                    }
                )
        except LedgerError as e:
            self._log_rejection("burn", caller, holder, e)
            raise

        log_action(logger, "info", "Burned", caller=caller, action="burn", resource=holder,
                   extra={"amount": str(amount), "principal": str(account.principal)})
        return amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move amount units from sender to recipient.

        Both sides are settled first. An empty recipient inherits the
        sender's locked rate; the global rate is untouched.

        Raises:
            InvalidAmountError: Amount is not positive
            InsufficientBalanceError: Amount exceeds the sender's settled principal
        """
        try:
            validate_amount(amount)
            with self.storage.atomic():
                now = self.clock.now()
                state = self._load_state()
                source, source_interest = self._load_account(sender).settled(now)

                if amount > source.principal:
                    raise InsufficientBalanceError(sender, amount, source.principal)

                if sender == recipient:
                    # Settles once; nothing moves
                    target, target_interest = source, 0
                else:
                    target, target_interest = self._load_account(recipient).settled(now)
                    if target.is_empty:
                        target.rate = source.rate
                        target.last_accrual_time = now
                    source.principal -= amount
                    target.principal += amount
                    self._save_account(target)

                self._save_account(source)
                state.total_supply += source_interest + target_interest
                self._save_state(state)
                self.audit_trail.log_event(
                    event_type=AuditEventType.TRANSFERRED,
                    entity_type="account",
                    entity_id=sender,
                    caller=sender,
                    metadata={
                        "recipient": recipient,
                        "amount": amount,
                        "sender_interest_settled": source_interest,
                        "recipient_interest_settled": target_interest,
                        "recipient_rate": target.rate
                    }
                )
        except LedgerError as e:
            self._log_rejection("transfer", sender, recipient, e)
            raise

        log_action(logger, "info", "Transferred", caller=sender, action="transfer", resource=recipient,
                   extra={"amount": str(amount)})

    # Rate administration

    def set_interest_rate(self, caller: str, new_rate: int) -> None:
        """
        Lower (or keep) the global rate.

        Raises:
            AuthorizationError: Caller is not the rate administrator
            RateMonotonicityError: new_rate is above the current rate
        """
        try:
            with self.storage.atomic():
                self.access_gate.require_rate_administrator(caller)
                validate_rate(new_rate)
                state = self._load_state()
                previous = state.current_rate
                if new_rate > previous:
                    raise RateMonotonicityError(previous, new_rate)
                state.current_rate = new_rate
                self._save_state(state)
                self.audit_trail.log_event(
                    event_type=AuditEventType.RATE_CHANGED,
                    entity_type="ledger",
                    entity_id=self.address,
                    caller=caller,
                    metadata={"previous_rate": previous, "new_rate": new_rate}
                )
        except LedgerError as e:
            self._log_rejection("set_interest_rate", caller, self.address, e)
            raise

        log_action(logger, "info", "Interest rate changed", caller=caller, action="set_interest_rate",
                   resource=self.address, extra={"previous_rate": str(previous), "new_rate": str(new_rate)})

    # Persistence helpers

    def _load_account(self, holder: str) -> AccountRecord:
        data = self.storage.load(self.accounts_table, holder)
        if data is None:
            return AccountRecord(holder=holder)
        return AccountRecord.from_dict(data)

    def _save_account(self, account: AccountRecord) -> None:
        self.storage.save(self.accounts_table, account.holder, account.to_dict())

    def _load_state(self) -> LedgerState:
        data = self.storage.load(self.state_table, self.address)
        if data is None:
            raise RuntimeError(f"Ledger state for '{self.address}' is missing")
        return LedgerState.from_dict(data)

    def _save_state(self, state: LedgerState) -> None:
        self.storage.save(self.state_table, state.address, state.to_dict())

    def _log_rejection(self, action: str, caller: str, resource: str, error: LedgerError) -> None:
        log_action(logger, "warning", f"Rejected {action}: {error}", caller=caller, action=action,
                   resource=resource, extra={"error": type(error).__name__})
