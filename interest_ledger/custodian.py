"""
Custodian Module

Facade that turns the external asset into ledger units and back. Deposits
pull the asset into custody and mint the same quantity at the current
global rate; redemptions burn units and push the same quantity of the
asset out. The ledger mutation and the asset movement succeed or fail
together.
"""

from .audit import AuditEventType
from .errors import LedgerError
from .fixed_point import MAX_AMOUNT, validate_amount
from .ledger import AccountRecord, InterestLedger
from .logging_config import get_logger, log_action
from .vault import AssetVault


logger = get_logger("interest_ledger.custodian")


class Custodian:
    """
    Deposit/redeem facade bound to one ledger

    The custodian acts on the ledger under its own identity, which must
    hold supply control.
    """

    def __init__(self, ledger: InterestLedger, vault: AssetVault, address: str = "custodian"):
        self._ledger = ledger
        self.vault = vault
        self.address = address
        self.storage = ledger.storage
        self.audit_trail = ledger.audit_trail

    def get_ledger_address(self) -> str:
        """Identity of the bound ledger"""
        return self._ledger.address

    @property
    def ledger(self) -> InterestLedger:
        return self._ledger

    def custody_balance(self) -> int:
        """Asset currently held in custody"""
        return self.vault.custody_balance()

    def deposit(self, caller: str, amount: int) -> AccountRecord:
        """
        Pull amount of the asset from caller and mint the same to caller.

        The mint is stamped with the global rate at call time. If minting
        fails, the pulled asset is returned before the error propagates.

        Raises:
            InvalidAmountError: Amount is not positive
            ExternalTransferError: The asset could not be pulled
            AuthorizationError: The custodian lacks supply control
        """
        try:
            validate_amount(amount)
            with self.storage.atomic():
                self.vault.pull(caller, amount)
                try:
                    account = self._ledger.mint(
                        self.address, caller, amount, self._ledger.get_interest_rate()
                    )
                    self.audit_trail.log_event(
                        event_type=AuditEventType.DEPOSITED,
                        entity_type="custody",
                        entity_id=caller,
                        caller=caller,
                        metadata={"amount": amount, "rate": account.rate}
                    )
                except Exception:
                    self.vault.push(caller, amount)
                    raise
        except LedgerError as e:
            self._log_rejection("deposit", caller, e)
            raise

        log_action(logger, "info", "Deposit accepted", caller=caller, action="deposit",
                   resource=self.address, extra={"amount": str(amount)})
        return account

    def redeem(self, caller: str, amount: int) -> int:
        """
        Burn amount of caller's units and push the same amount of asset out.

        MAX_AMOUNT redeems the caller's whole balance, settled at call time.
        If the asset cannot be pushed, the burn is rolled back.

        Returns:
            The amount redeemed

        Raises:
            InvalidAmountError: Amount is not positive, or nothing to redeem
            InsufficientBalanceError: Amount exceeds the caller's balance
            ExternalTransferError: Custody could not pay out
        """
        try:
            validate_amount(amount, allow_max=True)
            with self.storage.atomic():
                # Burn resolves the sentinel after settling, at one instant
                burned = self._ledger.burn(self.address, caller, amount)
                self.audit_trail.log_event(
                    event_type=AuditEventType.REDEEMED,
                    entity_type="custody",
                    entity_id=caller,
                    caller=caller,
                    metadata={"amount": burned, "requested_max": amount == MAX_AMOUNT}
                )
                # Asset leaves custody as the last step
                self.vault.push(caller, burned)
        except LedgerError as e:
            self._log_rejection("redeem", caller, e)
            raise

        log_action(logger, "info", "Redemption paid", caller=caller, action="redeem",
                   resource=self.address, extra={"amount": str(burned)})
        return burned

    def fund_rewards(self, funder: str, amount: int) -> None:
        """
        Pull asset into custody without minting.

        This is the pool that pays out interest on redemption.
        """
        try:
            validate_amount(amount)
            with self.storage.atomic():
                self.vault.pull(funder, amount)
                self.audit_trail.log_event(
                    event_type=AuditEventType.REWARDS_FUNDED,
                    entity_type="custody",
                    entity_id=self.address,
                    caller=funder,
                    metadata={"amount": amount}
                )
        except LedgerError as e:
            self._log_rejection("fund_rewards", funder, e)
            raise

        log_action(logger, "info", "Rewards funded", caller=funder, action="fund_rewards",
                   resource=self.address, extra={"amount": str(amount)})

    def _log_rejection(self, action: str, caller: str, error: LedgerError) -> None:
        log_action(logger, "warning", f"Rejected {action}: {error}", caller=caller, action=action,
                   resource=self.address, extra={"error": type(error).__name__})
