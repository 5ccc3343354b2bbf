"""
Test suite for access control

Tests the storage-backed role store and the static test double.
"""

import pytest

from interest_ledger.access import RoleAccessGate, StaticAccessGate
from interest_ledger.audit import AuditEventType
from interest_ledger.errors import AuthorizationError
from interest_ledger.storage import InMemoryStorage


class TestStaticAccessGate:
    """Test the always-allow / always-deny double"""

    def test_allow_all(self):
        gate = StaticAccessGate(allow=True)
        assert gate.has_supply_control("anyone")
        assert gate.is_rate_administrator("anyone")
        gate.require_supply_control("anyone")
        gate.require_rate_administrator("anyone")

    def test_deny_all(self):
        gate = StaticAccessGate(allow=False)
        assert not gate.has_supply_control("anyone")
        with pytest.raises(AuthorizationError) as exc_info:
            gate.require_rate_administrator("anyone")
        assert exc_info.value.caller == "anyone"
        assert exc_info.value.privilege == "rate administration"


class TestRoleAccessGate:
    """Test the persisted policy store"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.gate = RoleAccessGate(self.storage, administrator="admin", supply_controllers=["custodian"])

    def test_initial_policy(self):
        assert self.gate.administrator == "admin"
        assert self.gate.supply_controllers == {"custodian"}
        assert self.gate.is_rate_administrator("admin")
        assert not self.gate.is_rate_administrator("custodian")
        assert self.gate.has_supply_control("custodian")
        assert not self.gate.has_supply_control("admin")

    def test_requires_administrator_on_fresh_storage(self):
        with pytest.raises(ValueError, match="administrator is required"):
            RoleAccessGate(InMemoryStorage())

    def test_policy_persists(self):
        """Test that reopening ignores bootstrap arguments"""
        self.gate.grant_supply_control("admin", "minter")
        reopened = RoleAccessGate(self.storage, administrator="someone-else")

        assert reopened.administrator == "admin"
        assert reopened.supply_controllers == {"custodian", "minter"}

    def test_grant_and_revoke(self):
        self.gate.grant_supply_control("admin", "minter")
        assert self.gate.has_supply_control("minter")

        self.gate.revoke_supply_control("admin", "minter")
        assert not self.gate.has_supply_control("minter")

        trail = self.gate.audit_trail
        assert len(trail.get_events_by_type(AuditEventType.SUPPLY_CONTROL_GRANTED)) == 1
        assert len(trail.get_events_by_type(AuditEventType.SUPPLY_CONTROL_REVOKED)) == 1

    def test_grant_is_idempotent(self):
        self.gate.grant_supply_control("admin", "custodian")
        assert self.gate.audit_trail.get_events_by_type(AuditEventType.SUPPLY_CONTROL_GRANTED) == []

    def test_only_administrator_manages_roles(self):
        with pytest.raises(AuthorizationError):
            self.gate.grant_supply_control("custodian", "mallory")
        with pytest.raises(AuthorizationError):
            self.gate.revoke_supply_control("custodian", "custodian")
        with pytest.raises(AuthorizationError):
            self.gate.transfer_administration("custodian", "custodian")

        assert self.gate.supply_controllers == {"custodian"}
        assert self.gate.administrator == "admin"

    def test_transfer_administration(self):
        self.gate.transfer_administration("admin", "new-admin")

        assert self.gate.is_rate_administrator("new-admin")
        assert not self.gate.is_rate_administrator("admin")
        # Supply controllers are carried over
        assert self.gate.supply_controllers == {"custodian"}

        events = self.gate.audit_trail.get_events_by_type(AuditEventType.ADMINISTRATOR_TRANSFERRED)
        assert events[0].metadata["previous_administrator"] == "admin"

    def test_transfer_administration_to_empty_identity(self):
        with pytest.raises(ValueError):
            self.gate.transfer_administration("admin", "")
