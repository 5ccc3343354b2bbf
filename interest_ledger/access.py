"""
Access Control Module

Answers the two privilege questions the ledger asks: may this caller mint
and burn (supply control), and is this caller the rate administrator.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional, Set

from .audit import AuditEventType, AuditTrail
from .errors import AuthorizationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface


logger = get_logger("interest_ledger.access")


class Privilege:
    """Privilege names used in authorization errors"""
    SUPPLY_CONTROL = "supply control"
    RATE_ADMINISTRATION = "rate administration"


class AccessGate(ABC):
    """Capability queries consulted by the ledger before privileged calls"""

    @abstractmethod
    def has_supply_control(self, caller: str) -> bool:
        """Whether caller may mint and burn"""
        pass

    @abstractmethod
    def is_rate_administrator(self, caller: str) -> bool:
        """Whether caller may change the global interest rate"""
        pass

    def require_supply_control(self, caller: str) -> None:
        if not self.has_supply_control(caller):
            raise AuthorizationError(caller, Privilege.SUPPLY_CONTROL)

    def require_rate_administrator(self, caller: str) -> None:
        if not self.is_rate_administrator(caller):
            raise AuthorizationError(caller, Privilege.RATE_ADMINISTRATION)


class StaticAccessGate(AccessGate):
    """Answers every query the same way; a test double"""

    def __init__(self, allow: bool = True):
        self.allow = allow

    def has_supply_control(self, caller: str) -> bool:
        return self.allow

    def is_rate_administrator(self, caller: str) -> bool:
        return self.allow


class RoleAccessGate(AccessGate):
    """
    Storage-backed policy store.

    Exactly one rate administrator, who also manages the set of supply
    controllers. Role changes are audited and persist in the same storage
    as the ledger.
    """

    def __init__(
        self,
        storage: StorageInterface,
        administrator: Optional[str] = None,
        supply_controllers: Iterable[str] = (),
        audit_trail: Optional[AuditTrail] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail or AuditTrail(storage)
        self.policy_table = "access_policy"

        with self.storage.atomic():
            if self._load_policy() is None:
                if not administrator:
                    raise ValueError("An administrator is required to initialize access policy")
                self._save_policy(administrator, set(supply_controllers))

    def _load_policy(self) -> Optional[dict]:
        return self.storage.load(self.policy_table, "policy")

    def _save_policy(self, administrator: str, supply_controllers: Set[str]) -> None:
        self.storage.save(self.policy_table, "policy", {
            "administrator": administrator,
            "supply_controllers": sorted(supply_controllers),
            "updated_at": datetime.now(timezone.utc).isoformat()
        })

    @property
    def administrator(self) -> str:
        return self._load_policy()["administrator"]

    @property
    def supply_controllers(self) -> Set[str]:
        return set(self._load_policy()["supply_controllers"])

    def has_supply_control(self, caller: str) -> bool:
        return caller in self.supply_controllers

    def is_rate_administrator(self, caller: str) -> bool:
        return caller == self.administrator

    def grant_supply_control(self, caller: str, grantee: str) -> None:
        """Add grantee to the supply controllers (administrator only)"""
        with self.storage.atomic():
            self.require_rate_administrator(caller)
            controllers = self.supply_controllers
            if grantee in controllers:
                return
            controllers.add(grantee)
            self._save_policy(self.administrator, controllers)
            self.audit_trail.log_event(
                event_type=AuditEventType.SUPPLY_CONTROL_GRANTED,
                entity_type="access",
                entity_id=grantee,
                caller=caller
            )
        log_action(logger, "info", "Supply control granted",
                   caller=caller, action="grant_supply_control", resource=grantee)

    def revoke_supply_control(self, caller: str, grantee: str) -> None:
        """Remove grantee from the supply controllers (administrator only)"""
        with self.storage.atomic():
            self.require_rate_administrator(caller)
            controllers = self.supply_controllers
            if grantee not in controllers:
                return
            controllers.discard(grantee)
            self._save_policy(self.administrator, controllers)
            self.audit_trail.log_event(
                event_type=AuditEventType.SUPPLY_CONTROL_REVOKED,
                entity_type="access",
                entity_id=grantee,
                caller=caller
            )
        log_action(logger, "info", "Supply control revoked",
                   caller=caller, action="revoke_supply_control", resource=grantee)

    def transfer_administration(self, caller: str, new_administrator: str) -> None:
        """Hand the rate administrator role to someone else"""
        if not new_administrator:
            raise ValueError("New administrator must be a non-empty identity")
        with self.storage.atomic():
            self.require_rate_administrator(caller)
            self._save_policy(new_administrator, self.supply_controllers)
            self.audit_trail.log_event(
                event_type=AuditEventType.ADMINISTRATOR_TRANSFERRED,
                entity_type="access",
                entity_id=new_administrator,
                caller=caller,
                metadata={"previous_administrator": caller}
            )
        log_action(logger, "info", "Rate administration transferred",
                   caller=caller, action="transfer_administration", resource=new_administrator)
