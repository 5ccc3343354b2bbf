"""
System Assembly

Builds the storage, access gate, ledger, vault and custodian from
configuration and wires them together.
"""

from typing import Optional

from .access import RoleAccessGate
from .audit import AuditTrail
from .clock import Clock
from .config import LedgerConfig, get_config
from .custodian import Custodian
from .fixed_point import annual_rate_to_per_second
from .ledger import InterestLedger
from .logging_config import get_logger
from .storage import StorageInterface, create_storage
from .vault import AssetVault, StorageAssetVault


logger = get_logger("interest_ledger.system")


class LedgerSystem:
    """Interest ledger with all components initialized"""

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        storage: Optional[StorageInterface] = None,
        vault: Optional[AssetVault] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.audit_trail = AuditTrail(self.storage)

        controllers = set(self.config.supply_controllers)
        controllers.add(self.config.custodian_address)
        self.access_gate = RoleAccessGate(
            self.storage,
            administrator=self.config.rate_administrator,
            supply_controllers=controllers,
            audit_trail=self.audit_trail
        )

        self.ledger = InterestLedger(
            self.storage,
            self.access_gate,
            address=self.config.ledger_address,
            initial_rate=annual_rate_to_per_second(self.config.initial_annual_rate),
            clock=clock,
            audit_trail=self.audit_trail
        )
        self.vault = vault or StorageAssetVault(self.storage, self.config.opening_asset_balances)
        self.custodian = Custodian(self.ledger, self.vault, address=self.config.custodian_address)

        logger.info("Ledger system ready: ledger=%s custodian=%s",
                    self.ledger.address, self.custodian.address)

    def close(self) -> None:
        self.storage.close()
