"""
IVChain Ledger Test Suite

Critical invariants tested:
    HEIGHTS ARE CONTIGUOUS AND EVERY BLOCK LINKS TO ITS PREDECESSOR
    AN IV HASH IS RECORDED AT MOST ONCE, EVEN UNDER CONCURRENT APPENDS
"""

import os
import shutil
import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor

from ivchain.errors import DuplicateRecordError, GenesisMissingError, NotFoundError
from ivchain.hashing import GENESIS_HASH, sha256_hash
from ivchain.ledger import ChainLedger
from ivchain.records import Block, create_record
from ivchain.storage import InMemoryBlockStore, SqliteBlockStore, get_block_store
from ivchain.verifier import verify_chain


BASE = [1000, 1020, 980, 1015, 985, 1025, 990]


def make_record(i: int, identity: str = "alice"):
    """Distinct valid vector per i (shifting all values keeps the variance)."""
    return create_record(identity, f"pk-{identity}", [v + i for v in BASE], 1_700_000_000 + i)


class LedgerContract:
    """Behaviour shared by every store backend."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.ledger = ChainLedger(self.store)

    def tearDown(self):
        self.store.close()

    def test_empty_ledger(self):
        self.assertEqual(self.ledger.height(), 0)
        self.assertEqual(self.ledger.tip_hash(), GENESIS_HASH)
        self.assertEqual(list(self.ledger.blocks()), [])

    def test_first_block_links_to_genesis(self):
        block = self.ledger.append(make_record(0))
        self.assertEqual(block.height, 1)
        self.assertEqual(block.previous_hash, GENESIS_HASH)
        self.assertEqual(self.ledger.tip_hash(), block.block_hash)

    def test_append_and_get_roundtrip(self):
        record = make_record(0)
        block = self.ledger.append(record)
        fetched = self.ledger.get(block.tx_id)
        self.assertEqual(fetched, block)
        self.assertEqual(fetched.record, record)

    def test_chain_links(self):
        blocks = [self.ledger.append(make_record(i)) for i in range(5)]
        self.assertEqual([b.height for b in blocks], [1, 2, 3, 4, 5])
        for prev, cur in zip(blocks, blocks[1:]):
            self.assertEqual(cur.previous_hash, prev.block_hash)
        self.assertEqual(len(self.ledger), 5)
        self.assertEqual(list(self.ledger.blocks()), blocks)

    def test_duplicate_raw_hash_rejected(self):
        self.ledger.append(make_record(0, "alice"))
        with self.assertRaises(DuplicateRecordError):
            self.ledger.append(make_record(0, "bob"))
        self.assertEqual(self.ledger.height(), 1)

    def test_contains(self):
        record = make_record(0)
        self.assertFalse(self.ledger.contains(record.raw_hash))
        self.ledger.append(record)
        self.assertTrue(self.ledger.contains(record.raw_hash))

    def test_unknown_tx_id(self):
        with self.assertRaises(NotFoundError):
            self.ledger.get("0" * 64)
        with self.assertRaises(KeyError):
            self.ledger.get("missing")

    def test_get_by_height(self):
        block = self.ledger.append(make_record(0))
        self.assertEqual(self.ledger.get_by_height(1), block)
        with self.assertRaises(NotFoundError):
            self.ledger.get_by_height(2)

    def test_store_rejects_height_collision(self):
        block = self.ledger.append(make_record(0))
        forged = Block.seal(1, make_record(1), GENESIS_HASH)
        with self.assertRaises(ValueError):
            self.store.append(forged)
        self.assertEqual(self.ledger.get_by_height(1), block)

    def test_concurrent_appends(self):
        k = 50
        with ThreadPoolExecutor(max_workers=8) as pool:
            blocks = list(pool.map(lambda i: self.ledger.append(make_record(i)), range(k)))

        self.assertEqual(self.ledger.height(), k)
        self.assertEqual(sorted(b.height for b in blocks), list(range(1, k + 1)))
        self.assertEqual(len({b.tx_id for b in blocks}), k)
        self.assertTrue(verify_chain(self.ledger).ok)

    def test_concurrent_duplicates_single_winner(self):
        record = make_record(0)

        def attempt(identity):
            try:
                return self.ledger.append(make_record(0, identity))
            except DuplicateRecordError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, [f"user-{n}" for n in range(20)]))

        self.assertEqual(sum(1 for r in results if r is not None), 1)
        self.assertEqual(self.ledger.height(), 1)
        self.assertTrue(self.ledger.contains(record.raw_hash))


class TestInMemoryLedger(LedgerContract, unittest.TestCase):

    def make_store(self):
        return InMemoryBlockStore()


class TestSqliteLedger(LedgerContract, unittest.TestCase):

    def make_store(self):
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "ledger.db")
        return SqliteBlockStore(self.db_path)

    def tearDown(self):
        super().tearDown()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_reopen_preserves_chain(self):
        blocks = [self.ledger.append(make_record(i)) for i in range(3)]
        self.store.close()

        reopened = SqliteBlockStore(self.db_path)
        try:
            ledger = ChainLedger(reopened)
            self.assertEqual(ledger.height(), 3)
            self.assertEqual(ledger.tip_hash(), blocks[-1].block_hash)
            self.assertEqual(ledger.get(blocks[1].tx_id), blocks[1])
            nxt = ledger.append(make_record(3))
            self.assertEqual(nxt.previous_hash, blocks[-1].block_hash)
        finally:
            reopened.close()

    def test_memory_path_rejected(self):
        with self.assertRaises(ValueError):
            SqliteBlockStore(":memory:")


class TestGenesisCheck(unittest.TestCase):

    def test_store_not_starting_at_genesis(self):
        store = InMemoryBlockStore()
        store.append(Block.seal(1, make_record(0), sha256_hash(b"not genesis")))
        with self.assertRaises(GenesisMissingError):
            ChainLedger(store)

    def test_auditor_can_open_without_genesis_check(self):
        store = InMemoryBlockStore()
        store.append(Block.seal(1, make_record(0), sha256_hash(b"not genesis")))
        ledger = ChainLedger(store, check_genesis=False)
        report = verify_chain(ledger)
        self.assertEqual(report.invalid_heights, [1])


class TestGetBlockStore(unittest.TestCase):

    def test_memory_backend(self):
        self.assertIsInstance(get_block_store("memory"), InMemoryBlockStore)

    def test_sqlite_backend(self):
        tmpdir = tempfile.mkdtemp()
        try:
            store = get_block_store("sqlite", os.path.join(tmpdir, "sub", "chain.db"))
            self.assertIsInstance(store, SqliteBlockStore)
            store.close()
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            get_block_store("redis")


if __name__ == "__main__":
    unittest.main()
