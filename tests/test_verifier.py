"""
IVChain Integrity Verifier Test Suite

Tampering is simulated by editing the stores directly, bypassing the
ledger, the way a compromised host or a bad restore would.
"""

import dataclasses
import json
import os
import shutil
import sqlite3
import tempfile
import unittest

from ivchain.errors import DuplicateRecordError, IntegrityViolationError, RejectCode
from ivchain.hashing import GENESIS_HASH, sha256_hash
from ivchain.ledger import ChainLedger
from ivchain.records import Block, UnreadableBlock, create_record, load_block
from ivchain.storage import InMemoryBlockStore, SqliteBlockStore
from ivchain.validator import IVRuleset
from ivchain.vector import IVVector
from ivchain.verifier import (
    VALID_STATUS,
    IntegrityIssue,
    IntegrityVerifier,
    verify_chain,
)


BASE = [1000, 1020, 980, 1015, 985, 1025, 990]
TAMPERED_IV = [1100, 1120, 1080, 1115, 1085, 1125, 1090]


def make_record(i: int):
    return create_record(f"user-{i}", f"pk-{i}", [v + i for v in BASE], 1_700_000_000 + i)


def issues_at(report, height):
    return {i.issue for i in report.issues if i.height == height}


class TestCleanChain(unittest.TestCase):

    def test_empty_chain_is_valid(self):
        report = verify_chain(ChainLedger())
        self.assertTrue(report.ok)
        self.assertEqual(report.checked, 0)
        self.assertEqual(report.status, VALID_STATUS)

    def test_valid_chain(self):
        ledger = ChainLedger()
        for i in range(5):
            ledger.append(make_record(i))
        report = IntegrityVerifier().verify(ledger)
        self.assertTrue(report.ok)
        self.assertEqual(report.checked, 5)
        self.assertEqual(report.invalid_count, 0)
        self.assertIsNone(report.first_bad_height)
        self.assertEqual(report.to_dict()["status"], "All voiceprints valid")

    def test_assert_valid_returns_report(self):
        ledger = ChainLedger()
        ledger.append(make_record(0))
        self.assertTrue(IntegrityVerifier().assert_valid(ledger).ok)


class TestInMemoryTampering(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryBlockStore()
        self.ledger = ChainLedger(self.store)
        self.blocks = [self.ledger.append(make_record(i)) for i in range(5)]

    def _replace(self, index, block):
        self.store._blocks[index] = block

    def test_in_place_record_edit_flags_only_that_block(self):
        original = self.blocks[2]
        edited = dataclasses.replace(
            original,
            record=dataclasses.replace(original.record, iv=IVVector(TAMPERED_IV)),
        )
        self._replace(2, edited)

        report = verify_chain(self.ledger)
        self.assertFalse(report.ok)
        self.assertEqual(report.invalid_count, 1)
        self.assertEqual(report.first_bad_height, 3)
        self.assertEqual(
            issues_at(report, 3),
            {IntegrityIssue.BLOCK_HASH_MISMATCH, IntegrityIssue.RAW_HASH_MISMATCH},
        )
        self.assertEqual(report.status, "1 invalid record(s) found")

    def test_rehashed_block_breaks_next_link(self):
        original = self.blocks[1]
        record = create_record("mallory", "pk-m", TAMPERED_IV, original.record.timestamp)
        self._replace(1, Block.seal(2, record, original.previous_hash))

        report = verify_chain(self.ledger)
        self.assertEqual(report.invalid_heights, [3])
        self.assertEqual(issues_at(report, 3), {IntegrityIssue.BROKEN_LINK})

    def test_broken_link(self):
        original = self.blocks[3]
        self._replace(3, Block.seal(4, original.record, sha256_hash(b"elsewhere")))

        report = verify_chain(self.ledger)
        self.assertIn(IntegrityIssue.BROKEN_LINK, issues_at(report, 4))
        # block 5 still points at the old block 4 hash
        self.assertIn(IntegrityIssue.BROKEN_LINK, issues_at(report, 5))

    def test_multiple_corruptions_aggregated(self):
        for index in (1, 3):
            b = self.blocks[index]
            self._replace(index, dataclasses.replace(b, block_hash=sha256_hash(b"bad")))

        report = verify_chain(self.ledger)
        # each forged hash breaks the next block's link too
        self.assertEqual(report.invalid_heights, [2, 3, 4, 5])
        self.assertEqual(report.invalid_count, 4)
        self.assertEqual(report.first_bad_height, 2)
        self.assertEqual(len(report.to_dict()["details"]), len(report.issues))

    def test_invalid_vector_on_chain(self):
        # the ledger itself does not validate; only the oracle gate does
        bad = create_record("bypass", "pk", [1000, 1000, 1000, 1000, 1001, 1002, 1003], 1)
        self.ledger.append(bad)

        report = verify_chain(self.ledger)
        self.assertEqual(issues_at(report, 6), {IntegrityIssue.VALIDATION_FAILED})
        detail = report.issues[0].details
        self.assertEqual(detail["reason"], "VarianceTooLow")

    def test_custom_ruleset(self):
        strict = IVRuleset(min_variance=300)
        report = IntegrityVerifier(strict).verify(self.ledger)
        self.assertEqual(report.invalid_count, 5)

    def test_duplicate_raw_hash(self):
        first = self.blocks[0]
        dup = Block.seal(6, dataclasses.replace(first.record, identity="copy"), self.ledger.tip_hash())
        self.store._blocks.append(dup)

        report = verify_chain(self.ledger)
        self.assertEqual(issues_at(report, 6), {IntegrityIssue.DUPLICATE_RAW_HASH})
        self.assertEqual(report.issues[0].details["first_seen_height"], 1)

    def test_height_gap(self):
        del self.store._blocks[2]

        report = verify_chain(self.ledger)
        self.assertIn(IntegrityIssue.HEIGHT_GAP, issues_at(report, 4))
        self.assertIn(IntegrityIssue.BROKEN_LINK, issues_at(report, 4))

    def test_assert_valid_raises(self):
        self._replace(0, dataclasses.replace(self.blocks[0], previous_hash=sha256_hash(b"x")))
        with self.assertRaises(IntegrityViolationError) as ctx:
            IntegrityVerifier().assert_valid(self.ledger)
        self.assertEqual(ctx.exception.code, RejectCode.INTEGRITY_VIOLATION)
        self.assertEqual(ctx.exception.report.first_bad_height, 1)

    def test_verify_does_not_repair(self):
        self._replace(2, dataclasses.replace(self.blocks[2], block_hash=sha256_hash(b"bad")))
        verify_chain(self.ledger)
        self.assertFalse(verify_chain(self.ledger).ok)
        self.assertEqual(self.ledger.height(), 5)


class TestSqliteTampering(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "ledger.db")
        self.store = SqliteBlockStore(self.db_path)
        self.ledger = ChainLedger(self.store)
        self.blocks = [self.ledger.append(make_record(i)) for i in range(3)]

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_record_json_edit_detected(self):
        body = self.blocks[1].record.to_dict()
        body["iv"] = TAMPERED_IV
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("UPDATE blocks SET record_json=? WHERE height=2", (json.dumps(body),))
            conn.commit()
        finally:
            conn.close()

        report = verify_chain(self.ledger)
        self.assertEqual(report.invalid_heights, [2])
        self.assertEqual(
            issues_at(report, 2),
            {IntegrityIssue.BLOCK_HASH_MISMATCH, IntegrityIssue.RAW_HASH_MISMATCH},
        )

    def _rewrite_record_json(self, height, record_json):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("UPDATE blocks SET record_json=? WHERE height=?", (record_json, height))
            conn.commit()
        finally:
            conn.close()

    def _assert_only_unreadable(self, report, height):
        self.assertFalse(report.ok)
        self.assertEqual(report.invalid_count, 1)
        self.assertEqual(report.invalid_heights, [height])
        self.assertEqual(issues_at(report, height), {IntegrityIssue.UNREADABLE_BLOCK})

    def test_short_vector_reported_as_unreadable(self):
        body = self.blocks[1].record.to_dict()
        body["iv"] = body["iv"][:6]
        self._rewrite_record_json(2, json.dumps(body))

        report = verify_chain(self.ledger)
        self._assert_only_unreadable(report, 2)
        issue = report.issues[0]
        self.assertEqual(issue.tx_id, self.blocks[1].tx_id)
        self.assertIn("ValueError", issue.details["error"])

    def test_fractional_value_reported_as_unreadable(self):
        body = self.blocks[1].record.to_dict()
        body["iv"][0] = 1001.5
        self._rewrite_record_json(2, json.dumps(body))

        report = verify_chain(self.ledger)
        self._assert_only_unreadable(report, 2)
        self.assertIn("TypeError", report.issues[0].details["error"])

    def test_invalid_json_reported_as_unreadable(self):
        self._rewrite_record_json(2, "{not json")

        report = verify_chain(self.ledger)
        self._assert_only_unreadable(report, 2)
        self.assertEqual(report.status, "1 invalid record(s) found")
        # later blocks still link against the stored hash of the damaged one
        self.assertEqual(report.checked, 3)

    def test_unreadable_first_block_can_be_reopened(self):
        self._rewrite_record_json(1, "{not json")
        self.store.close()

        self.store = SqliteBlockStore(self.db_path)
        ledger = ChainLedger(self.store)
        self.assertEqual(ledger.height(), 3)

        report = verify_chain(ledger)
        self._assert_only_unreadable(report, 1)

    def test_unreadable_block_still_guards_duplicates(self):
        self._rewrite_record_json(1, "{not json")
        with self.assertRaises(DuplicateRecordError):
            self.ledger.append(make_record(0))

    def test_unreadable_block_export(self):
        self._rewrite_record_json(2, "{not json")
        exported = [b.to_dict() for b in self.store.scan()]
        self.assertEqual(exported[1]["record_raw"], "{not json")

        blocks = [load_block(d) for d in json.loads(json.dumps(exported))]
        self.assertIsInstance(blocks[1], UnreadableBlock)
        self._assert_only_unreadable(IntegrityVerifier().verify_blocks(blocks), 2)

    def test_export_roundtrip_verifies(self):
        exported = [b.to_dict() for b in self.ledger.blocks()]
        blocks = [Block.from_dict(d) for d in json.loads(json.dumps(exported))]
        self.assertTrue(IntegrityVerifier().verify_blocks(blocks).ok)
        self.assertEqual(blocks[0].previous_hash, GENESIS_HASH)


if __name__ == "__main__":
    unittest.main()
