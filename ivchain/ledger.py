"""
IVChain Chain Ledger

Append-only sequence of blocks, each linking to the previous block's hash.

Concurrency model:
- append() is the only mutating operation and runs under a single
  process-wide lock per ledger, so height assignment, the duplicate check
  and previous-hash linkage all see one linearized tip
- get(), height(), tip_hash() and blocks() do not take the lock; they read
  from the store, which only ever exposes fully constructed blocks
- nothing slow (signature checks, validation) happens inside the lock

The ledger cannot self-heal: corruption found by the verifier does not stop
further appends.
"""

import logging
import threading
from typing import Iterator, Optional

from .errors import DuplicateRecordError, GenesisMissingError, NotFoundError
from .hashing import GENESIS_HASH
from .records import Block, Record, StoredBlock
from .storage import BlockStore, InMemoryBlockStore

logger = logging.getLogger(__name__)


class ChainLedger:
    """
    Usage:
        ledger = ChainLedger()
        block = ledger.append(record)
        assert ledger.get(block.tx_id) == block

    Auditors opening a store that may be damaged pass check_genesis=False;
    the verifier then reports a bad first link instead of the ledger
    refusing to open.
    """

    def __init__(self, store: Optional[BlockStore] = None, check_genesis: bool = True):
        self.store = store if store is not None else InMemoryBlockStore()
        self._write_lock = threading.Lock()
        if check_genesis:
            self._check_genesis()

    def _check_genesis(self) -> None:
        if self.store.height() == 0:
            return
        first = self.store.get_by_height(1)
        if first is None:
            raise GenesisMissingError()
        if first.previous_hash != GENESIS_HASH:
            raise GenesisMissingError(first.previous_hash)

    def append(self, record: Record) -> Block:
        """
        Append a record as a new block at the tip.

        Raises:
            DuplicateRecordError: if record.raw_hash is already on the chain
            GenesisMissingError: if the store reports blocks but has no tip
        """
        with self._write_lock:
            if self.store.contains_raw_hash(record.raw_hash):
                raise DuplicateRecordError(record.raw_hash)

            height = self.store.height()
            if height == 0:
                previous_hash = GENESIS_HASH
            else:
                tip = self.store.get_by_height(height)
                if tip is None:
                    raise GenesisMissingError()
                previous_hash = tip.block_hash

            block = Block.seal(height + 1, record, previous_hash)
            self.store.append(block)

        logger.debug("Appended block %d tx=%s", block.height, block.tx_id)
        return block

    def get(self, tx_id: str) -> StoredBlock:
        """
        Raises:
            NotFoundError: if no block has this transaction id
        """
        block = self.store.get(tx_id)
        if block is None:
            raise NotFoundError(tx_id)
        return block

    def get_by_height(self, height: int) -> StoredBlock:
        block = self.store.get_by_height(height)
        if block is None:
            raise NotFoundError(f"height:{height}")
        return block

    def height(self) -> int:
        return self.store.height()

    def tip_hash(self) -> str:
        """Hash of the most recent block, or GENESIS_HASH when empty."""
        tip = self.store.tip()
        return tip.block_hash if tip else GENESIS_HASH

    def contains(self, raw_hash: str) -> bool:
        return self.store.contains_raw_hash(raw_hash)

    def blocks(self) -> Iterator[StoredBlock]:
        """Blocks in ascending height order (snapshot)."""
        return self.store.scan()

    def __len__(self) -> int:
        return self.height()
