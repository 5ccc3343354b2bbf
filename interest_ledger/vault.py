"""
Asset Vault Module

Boundary to the external asset backing the ledger. The custodian pulls the
asset from holders on deposit and pushes it back on redemption; any failed
movement raises ExternalTransferError.

StorageAssetVault keeps its book in the ledger's storage, so asset
movements commit and roll back with the ledger operation around them.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from .errors import ExternalTransferError
from .fixed_point import validate_amount
from .logging_config import get_logger
from .storage import StorageInterface


logger = get_logger("interest_ledger.vault")


class AssetVault(ABC):
    """External asset movement in and out of custody"""

    @abstractmethod
    def pull(self, holder: str, amount: int) -> None:
        """Move amount from holder into custody"""
        pass

    @abstractmethod
    def push(self, holder: str, amount: int) -> None:
        """Move amount from custody to holder"""
        pass

    @abstractmethod
    def balance_of(self, holder: str) -> int:
        """Asset held by holder outside custody"""
        pass

    @abstractmethod
    def custody_balance(self) -> int:
        """Asset held in custody"""
        pass


class InMemoryAssetVault(AssetVault):
    """
    Asset book kept in process memory

    Holders must be credited before they can deposit. Movements are checked
    before anything changes, so a failed pull or push leaves both sides as
    they were.
    """

    def __init__(self):
        self._balances: Dict[str, int] = {}
        self._custody = 0
        self._lock = threading.RLock()

    def credit(self, holder: str, amount: int) -> None:
        """Give holder some of the asset from outside the system"""
        validate_amount(amount)
        with self._lock:
            self._balances[holder] = self._balances.get(holder, 0) + amount

    def pull(self, holder: str, amount: int) -> None:
        validate_amount(amount)
        with self._lock:
            available = self._balances.get(holder, 0)
            if amount > available:
                raise ExternalTransferError(
                    f"Cannot pull {amount} from '{holder}': only {available} available"
                )
            self._balances[holder] = available - amount
            self._custody += amount
        logger.debug("Pulled %s from %s into custody", amount, holder)

    def push(self, holder: str, amount: int) -> None:
        validate_amount(amount)
        with self._lock:
            if amount > self._custody:
                raise ExternalTransferError(
                    f"Cannot push {amount} to '{holder}': custody holds {self._custody}"
                )
            self._custody -= amount
            self._balances[holder] = self._balances.get(holder, 0) + amount
        logger.debug("Pushed %s from custody to %s", amount, holder)

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return self._balances.get(holder, 0)

    def custody_balance(self) -> int:
        with self._lock:
            return self._custody


class StorageAssetVault(AssetVault):
    """
    Asset book persisted through StorageInterface

    Opening balances are credited once, when the book is first created in
    a storage; reopening an existing book ignores them.
    """

    def __init__(self, storage: StorageInterface, opening_balances: Optional[Mapping[str, int]] = None):
        self.storage = storage
        self.holdings_table = "vault_holdings"
        self.custody_table = "vault_custody"

        with self.storage.atomic():
            if self.storage.load(self.custody_table, "custody") is None:
                self._save_custody(0)
                for holder, amount in (opening_balances or {}).items():
                    self.credit(holder, amount)
                logger.info("Asset vault opened with %d funded holders", len(opening_balances or {}))

    def credit(self, holder: str, amount: int) -> None:
        """Give holder some of the asset from outside the system"""
        validate_amount(amount)
        with self.storage.atomic():
            self._save_holding(holder, self.balance_of(holder) + amount)

    def pull(self, holder: str, amount: int) -> None:
        validate_amount(amount)
        with self.storage.atomic():
            available = self.balance_of(holder)
            if amount > available:
                raise ExternalTransferError(
                    f"Cannot pull {amount} from '{holder}': only {available} available"
                )
            self._save_holding(holder, available - amount)
            self._save_custody(self.custody_balance() + amount)
        logger.debug("Pulled %s from %s into custody", amount, holder)

    def push(self, holder: str, amount: int) -> None:
        validate_amount(amount)
        with self.storage.atomic():
            custody = self.custody_balance()
            if amount > custody:
                raise ExternalTransferError(
                    f"Cannot push {amount} to '{holder}': custody holds {custody}"
                )
            self._save_custody(custody - amount)
            self._save_holding(holder, self.balance_of(holder) + amount)
        logger.debug("Pushed %s from custody to %s", amount, holder)

    def balance_of(self, holder: str) -> int:
        data = self.storage.load(self.holdings_table, holder)
        return int(data["balance"]) if data else 0

    def custody_balance(self) -> int:
        data = self.storage.load(self.custody_table, "custody")
        return int(data["balance"]) if data else 0

    def _save_holding(self, holder: str, balance: int) -> None:
        self.storage.save(self.holdings_table, holder, {
            "holder": holder,
            "balance": str(balance),
            "updated_at": datetime.now(timezone.utc).isoformat()
        })

    def _save_custody(self, balance: int) -> None:
        self.storage.save(self.custody_table, "custody", {
            "balance": str(balance),
            "updated_at": datetime.now(timezone.utc).isoformat()
        })
