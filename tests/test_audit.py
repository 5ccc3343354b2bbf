"""
Test suite for audit module

Tests hash-chained audit trail, tamper detection, and that rolled back
units of work leave the chain intact.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from interest_ledger.audit import AuditEvent, AuditEventType, AuditTrail
from interest_ledger.storage import InMemoryStorage, SQLiteStorage


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def test_metadata_serialization(self):
        """Test that big ints, decimals and enums become JSON-safe"""
        event = AuditEvent(
            id="EVT001",
            sequence=0,
            created_at=datetime.now(timezone.utc),
            event_type=AuditEventType.MINTED,
            entity_type="account",
            entity_id="alice",
            previous_hash="",
            current_hash="",
            metadata={
                "amount": 2 ** 200,
                "ratio": Decimal("0.05"),
                "kind": AuditEventType.BURNED,
                "flag": True,
                "nested": {"values": [1, 2]}
            }
        )

        assert event.metadata["amount"] == str(2 ** 200)
        assert event.metadata["ratio"] == "0.05"
        assert event.metadata["kind"] == "burned"
        assert event.metadata["flag"] is True
        assert event.metadata["nested"] == {"values": ["1", "2"]}

    def test_hash_round_trip(self):
        event = AuditEvent(
            id="EVT002",
            sequence=3,
            created_at=datetime.now(timezone.utc),
            event_type=AuditEventType.RATE_CHANGED,
            entity_type="ledger",
            entity_id="ledger-1",
            previous_hash="abc",
            current_hash="",
            caller="admin",
            metadata={"new_rate": 5}
        )
        event.current_hash = event.calculate_hash()

        restored = AuditEvent.from_dict(event.to_dict())
        assert restored.verify_hash()
        assert restored == event


class TestAuditTrail:
    """Test hash chaining and integrity verification"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.trail = AuditTrail(self.storage)

    def test_chain_links(self):
        first = self.trail.log_event(AuditEventType.MINTED, "account", "alice", {"amount": 1})
        second = self.trail.log_event(AuditEventType.BURNED, "account", "alice", {"amount": 1})

        assert first.sequence == 0
        assert first.previous_hash == ""
        assert second.sequence == 1
        assert second.previous_hash == first.current_hash

        result = self.trail.verify_integrity()
        assert result['valid']
        assert result['total_events'] == 2

    def test_events_for_entity(self):
        self.trail.log_event(AuditEventType.MINTED, "account", "alice")
        self.trail.log_event(AuditEventType.MINTED, "account", "bob")
        self.trail.log_event(AuditEventType.BURNED, "account", "alice")

        events = self.trail.get_events_for_entity("account", "alice")
        assert [e.event_type for e in events] == [AuditEventType.MINTED, AuditEventType.BURNED]
        assert len(self.trail.get_events_for_entity("account", "alice", limit=1)) == 1

    def test_tamper_detection(self):
        event = self.trail.log_event(AuditEventType.MINTED, "account", "alice", {"amount": 100})
        self.trail.log_event(AuditEventType.BURNED, "account", "alice", {"amount": 100})

        stored = self.storage.load(self.trail.table_name, event.id)
        stored['metadata']['amount'] = "1000000"
        self.storage.save(self.trail.table_name, event.id, stored)

        result = self.trail.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'][0]['event_id'] == event.id

    def test_chain_break_detection(self):
        self.trail.log_event(AuditEventType.MINTED, "account", "alice")
        middle = self.trail.log_event(AuditEventType.MINTED, "account", "bob")
        self.trail.log_event(AuditEventType.MINTED, "account", "carol")

        self.storage.delete(self.trail.table_name, middle.id)

        result = self.trail.verify_integrity()
        assert not result['valid']
        assert len(result['chain_breaks']) == 1

    def test_rolled_back_event_leaves_chain_intact(self):
        self.trail.log_event(AuditEventType.MINTED, "account", "alice")

        with pytest.raises(RuntimeError):
            with self.storage.atomic():
                self.trail.log_event(AuditEventType.BURNED, "account", "alice")
                raise RuntimeError("abort")

        follow_up = self.trail.log_event(AuditEventType.TRANSFERRED, "account", "alice")
        assert follow_up.sequence == 1
        assert self.trail.verify_integrity()['valid']

    def test_sqlite_backend(self):
        storage = SQLiteStorage()
        trail = AuditTrail(storage)
        for holder in ("alice", "bob", "carol"):
            trail.log_event(AuditEventType.DEPOSITED, "custody", holder, {"amount": 10 ** 25})

        assert trail.verify_integrity() == {
            'valid': True,
            'total_events': 3,
            'hash_errors': [],
            'chain_breaks': []
        }
        storage.close()
