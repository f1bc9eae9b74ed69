"""
Tests for the compliance decision engine.

Tests cover:
- Threshold policy management and validation
- Classification boundaries and sanction override
- Exactly-once decision recording
- Query accessors and ledger listing
- Screening through the sanctions registry
"""
from __future__ import annotations

import pytest

from bridgewatch.engine import ComplianceDecisionEngine, classify
from bridgewatch.exceptions import (
    ConfigurationError,
    DuplicateRecord,
    InvalidThreshold,
    MalformedInput,
    NotFound,
    Unauthorized,
)
from bridgewatch.hashing import leaf_hash, to_address, to_hex
from bridgewatch.merkle import SanctionsMerkleTree
from bridgewatch.models import DecisionTier, ThresholdPolicy


class TestClassification:
    """Classification is a pure function of verdict, score and thresholds."""

    @pytest.mark.parametrize(
        "score, expected",
        [
            (0, DecisionTier.APPROVED),
            (39, DecisionTier.APPROVED),
            (40, DecisionTier.FLAGGED),
            (79, DecisionTier.FLAGGED),
            (80, DecisionTier.BLOCKED),
            (100, DecisionTier.BLOCKED),
        ],
    )
    def test_boundaries(self, score, expected):
        assert classify(False, score, 40, 80) == expected

    @pytest.mark.parametrize("score", [0, 39, 40, 100])
    def test_sanction_overrides_score(self, score):
        assert classify(True, score, 40, 80) == DecisionTier.BLOCKED

    def test_flag_zero_flags_everything(self):
        assert classify(False, 0, 0, 1) == DecisionTier.FLAGGED

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(InvalidThreshold):
            classify(False, 10, 80, 40)


class TestThresholdManagement:
    def test_defaults(self, engine):
        assert engine.flag_threshold == 40
        assert engine.block_threshold == 80

    def test_owner_updates_thresholds(self, engine, admin, events):
        engine.update_thresholds(admin, 30, 70)

        assert engine.flag_threshold == 30
        assert engine.block_threshold == 70
        updates = events.events("policy.updated")
        assert updates[-1].data == {"flag_threshold": 30, "block_threshold": 70}

    def test_rejects_flag_not_below_block(self, engine, admin, events):
        with pytest.raises(InvalidThreshold) as exc_info:
            engine.update_thresholds(admin, 80, 40)

        assert "Flag must be less than block" in str(exc_info.value)
        assert engine.policy == ThresholdPolicy(40, 80)
        assert events.events("policy.*") == []

    def test_rejects_equal_thresholds(self, engine, admin):
        with pytest.raises(InvalidThreshold):
            engine.update_thresholds(admin, 50, 50)

    def test_rejects_block_over_100(self, engine, admin):
        with pytest.raises(InvalidThreshold) as exc_info:
            engine.update_thresholds(admin, 30, 150)

        assert "Block threshold max 100" in str(exc_info.value)
        assert engine.flag_threshold == 40
        assert engine.block_threshold == 80

    @pytest.mark.parametrize("flag, block", [(-1, 50), (10.5, 50), (True, 50), ("10", "50")])
    def test_rejects_out_of_domain(self, engine, admin, flag, block):
        with pytest.raises(InvalidThreshold):
            engine.update_thresholds(admin, flag, block)
        assert engine.policy == ThresholdPolicy(40, 80)

    def test_accepts_block_of_100(self, engine, admin):
        engine.update_thresholds(admin, 99, 100)
        assert engine.policy == ThresholdPolicy(99, 100)

    def test_rejects_non_owner(self, engine, user):
        with pytest.raises(Unauthorized):
            engine.update_thresholds(user, 10, 20)
        assert engine.policy == ThresholdPolicy(40, 80)

    def test_unauthorized_checked_before_validation(self, engine, user):
        with pytest.raises(Unauthorized):
            engine.update_thresholds(user, 80, 40)

    def test_policy_persisted(self, engine, admin, store, clock):
        engine.update_thresholds(admin, 25, 60)

        reopened = ComplianceDecisionEngine(admin=admin, store=store, clock=clock)

        assert reopened.policy == ThresholdPolicy(25, 60)

    def test_sees_policy_written_through_shared_store(self, engine, admin, store, clock):
        other = ComplianceDecisionEngine(admin=admin, store=store, clock=clock)

        other.update_thresholds(admin, 15, 35)

        assert engine.policy == ThresholdPolicy(15, 35)

    def test_without_admin_thresholds_are_locked(self, admin):
        engine = ComplianceDecisionEngine(admin=None)

        assert engine.owner is None
        with pytest.raises(Unauthorized):
            engine.update_thresholds(admin, 10, 20)
        assert engine.policy == ThresholdPolicy(40, 80)

    def test_default_policy_override(self, admin):
        engine = ComplianceDecisionEngine(admin=admin, default_policy=ThresholdPolicy(10, 20))
        assert engine.policy == ThresholdPolicy(10, 20)


class TestDecisionRecording:
    def test_reference_scenario(self, engine, admin, tx_id, sender, recipient):
        engine.update_thresholds(admin, 40, 80)

        assert engine.record_decision(tx_id("id1"), sender, recipient, 20, False) == DecisionTier.APPROVED
        assert engine.record_decision(tx_id("id2"), sender, recipient, 50, False) == DecisionTier.FLAGGED
        assert engine.record_decision(tx_id("id3"), sender, recipient, 80, False) == DecisionTier.BLOCKED
        assert engine.record_decision(tx_id("id4"), sender, recipient, 10, True) == DecisionTier.BLOCKED
        assert engine.total_decisions() == 4

    def test_record_fields(self, engine, tx_id, sender, recipient, clock):
        engine.record_decision(tx_id("test-tx"), sender, recipient, 50, False)

        record = engine.get_record(tx_id("test-tx"))

        assert record.transfer_id == tx_id("test-tx")
        assert record.sender == to_address(sender)
        assert record.recipient == to_address(recipient)
        assert record.risk_score == 50
        assert record.sanctioned is False
        assert record.decision == DecisionTier.FLAGGED
        assert record.timestamp == clock.now

    def test_emits_decision_event(self, engine, events, tx_id, sender, recipient):
        engine.record_decision(tx_id("test-tx"), sender, recipient, 50, False)

        recorded = events.events("decision.recorded")
        assert len(recorded) == 1
        assert recorded[0].data["transfer_id"] == to_hex(tx_id("test-tx"))
        assert recorded[0].data["sender"] == to_address(sender)
        assert recorded[0].data["recipient"] == to_address(recipient)
        assert recorded[0].data["risk_score"] == 50
        assert recorded[0].data["decision"] == "flagged"

    def test_duplicate_rejected_and_original_kept(self, engine, events, tx_id, sender, recipient, clock):
        engine.record_decision(tx_id("dup"), sender, recipient, 10, False)
        original = engine.get_record(tx_id("dup"))
        clock.advance(30)

        with pytest.raises(DuplicateRecord) as exc_info:
            engine.record_decision(tx_id("dup"), recipient, sender, 95, True)

        assert exc_info.value.error_code == "DUPLICATE_RECORD"
        assert engine.get_record(tx_id("dup")) == original
        assert engine.total_decisions() == 1
        assert len(events.events("decision.recorded")) == 1

    def test_counter_counts_only_successes(self, engine, admin, tx_id, sender, recipient):
        engine.record_decision(tx_id("a"), sender, recipient, 10, False)
        engine.record_decision(tx_id("b"), sender, recipient, 90, False)
        for _ in range(3):
            with pytest.raises(DuplicateRecord):
                engine.record_decision(tx_id("a"), sender, recipient, 10, False)
        with pytest.raises(MalformedInput):
            engine.record_decision(tx_id("c"), sender, recipient, -1, False)
        with pytest.raises(InvalidThreshold):
            engine.update_thresholds(admin, 90, 10)

        assert engine.total_decisions() == 2
        assert not engine.has_record(tx_id("c"))

    def test_hex_and_bytes_ids_are_the_same_key(self, engine, tx_id, sender, recipient):
        engine.record_decision(tx_id("x"), sender, recipient, 10, False)

        with pytest.raises(DuplicateRecord):
            engine.record_decision(to_hex(tx_id("x")), sender, recipient, 10, False)

    def test_uses_current_thresholds(self, engine, admin, tx_id, sender, recipient):
        assert engine.record_decision(tx_id("before"), sender, recipient, 50, False) == DecisionTier.FLAGGED
        engine.update_thresholds(admin, 60, 90)
        assert engine.record_decision(tx_id("after"), sender, recipient, 50, False) == DecisionTier.APPROVED

        # Earlier records keep the tier they were recorded with
        assert engine.get_record(tx_id("before")).decision == DecisionTier.FLAGGED

    def test_score_above_100_recorded_as_submitted(self, engine, tx_id, sender, recipient):
        assert engine.record_decision(tx_id("hi"), sender, recipient, 255, False) == DecisionTier.BLOCKED
        assert engine.get_record(tx_id("hi")).risk_score == 255

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"transfer_id": b"\x01" * 31},
            {"transfer_id": "test-tx"},
            {"sender": "0x1234"},
            {"recipient": None},
            {"risk_score": 256},
            {"risk_score": -5},
            {"risk_score": 50.0},
            {"risk_score": True},
            {"sanctioned": 1},
        ],
    )
    def test_malformed_inputs(self, engine, events, tx_id, sender, recipient, kwargs):
        args = {
            "transfer_id": tx_id("m"),
            "sender": sender,
            "recipient": recipient,
            "risk_score": 50,
            "sanctioned": False,
        }
        args.update(kwargs)

        with pytest.raises(MalformedInput):
            engine.record_decision(**args)

        assert engine.total_decisions() == 0
        assert len(events) == 0

    def test_recording_is_open_to_any_caller(self, admin, tx_id, sender, recipient):
        """No caller check on the recording channel."""
        engine = ComplianceDecisionEngine(admin=admin)
        assert engine.record_decision(tx_id("open"), sender, recipient, 0, False) == DecisionTier.APPROVED


class TestQueries:
    def test_get_record_not_found(self, engine, tx_id):
        with pytest.raises(NotFound) as exc_info:
            engine.get_record(tx_id("missing"))

        assert exc_info.value.error_code == "NOT_FOUND"

    def test_get_record_malformed_id(self, engine):
        with pytest.raises(MalformedInput):
            engine.get_record("0x1234")

    def test_total_starts_at_zero(self, engine):
        assert engine.total_decisions() == 0

    def test_list_records_newest_first_and_filters(self, engine, tx_id, sender, recipient, clean_address):
        engine.record_decision(tx_id("1"), sender, recipient, 10, False)
        engine.record_decision(tx_id("2"), sender, clean_address, 50, False)
        engine.record_decision(tx_id("3"), clean_address, recipient, 90, False)

        assert [r.transfer_id for r in engine.list_records()] == [tx_id("3"), tx_id("2"), tx_id("1")]
        assert [r.transfer_id for r in engine.list_records(sender=sender)] == [tx_id("2"), tx_id("1")]
        assert [r.transfer_id for r in engine.list_records(recipient=recipient)] == [tx_id("3"), tx_id("1")]
        assert [r.transfer_id for r in engine.list_records(tier=DecisionTier.FLAGGED)] == [tx_id("2")]
        assert len(engine.list_records(limit=1)) == 1


class TestScreenTransfer:
    @pytest.fixture
    def committed(self, registry, admin, sanctioned_address):
        members = [sanctioned_address, "0x" + "ab" * 20, "0x" + "cd" * 20]
        tree = SanctionsMerkleTree()
        tree.build(members)
        registry.update_commitment(admin, tree.root)
        return tree

    def test_sanctioned_sender_blocked(self, engine, committed, tx_id, sanctioned_address, recipient):
        tier = engine.screen_transfer(
            tx_id("s1"),
            sanctioned_address,
            recipient,
            10,
            sender_proof=committed.get_proof(sanctioned_address),
        )

        assert tier == DecisionTier.BLOCKED
        assert engine.get_record(tx_id("s1")).sanctioned is True

    def test_sanctioned_recipient_blocked(self, engine, committed, tx_id, sender, sanctioned_address):
        tier = engine.screen_transfer(
            tx_id("s2"),
            sender,
            sanctioned_address,
            10,
            sender_proof=[],
            recipient_proof=committed.get_proof(sanctioned_address),
        )
        assert tier == DecisionTier.BLOCKED

    def test_clean_parties_use_score(self, engine, committed, tx_id, sender, recipient):
        tier = engine.screen_transfer(tx_id("s3"), sender, recipient, 72, sender_proof=[], recipient_proof=[])

        assert tier == DecisionTier.FLAGGED
        assert engine.get_record(tx_id("s3")).sanctioned is False

    def test_requires_registry(self, admin, tx_id, sender, recipient):
        engine = ComplianceDecisionEngine(admin=admin)

        with pytest.raises(ConfigurationError):
            engine.screen_transfer(tx_id("s4"), sender, recipient, 10)

    def test_shares_registry_event_log(self, admin, registry):
        engine = ComplianceDecisionEngine(admin=admin, registry=registry)
        assert engine.events is registry.events


class TestSingleLeafScenario:
    def test_commit_over_one_identity(self, registry, admin, sanctioned_address, clean_address):
        registry.update_commitment(admin, leaf_hash(sanctioned_address))

        assert registry.verify_membership(sanctioned_address, []) is True
        assert registry.verify_membership(clean_address, []) is False
