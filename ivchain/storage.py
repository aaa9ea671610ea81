"""
Block storage backends for IVChain.

The ledger needs only atomic append and ordered scan from its store.
Two backends are provided:

- InMemoryBlockStore: process-local, for tests and ephemeral nodes
- SqliteBlockStore:   durable single-file store (WAL mode)

Stores enforce uniqueness of height, tx_id and raw_hash themselves, so a
bypassed or racing writer still cannot create a fork. Linkage and height
assignment are the ledger's job.

Reads never raise on a damaged row: a record that no longer parses comes
back as an UnreadableBlock for the verifier to report.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .errors import DuplicateRecordError
from .records import Block, Record, StoredBlock, UnreadableBlock

logger = logging.getLogger(__name__)


class BlockStore(ABC):
    """
    Abstract interface for block persistence.

    Implementations must be:
    - Atomic (a block is visible whole or not at all)
    - Ordered (scan yields ascending heights)
    - Safe for concurrent readers while one writer appends
    """

    @abstractmethod
    def append(self, block: Block) -> None:
        """
        Persist a block.

        Raises:
            DuplicateRecordError: if block.record.raw_hash is already stored
            ValueError: if height or tx_id collides with a stored block
        """
        pass

    @abstractmethod
    def get(self, tx_id: str) -> Optional[StoredBlock]:
        pass

    @abstractmethod
    def get_by_height(self, height: int) -> Optional[StoredBlock]:
        pass

    @abstractmethod
    def contains_raw_hash(self, raw_hash: str) -> bool:
        pass

    @abstractmethod
    def height(self) -> int:
        """Number of stored blocks (== height of the tip)."""
        pass

    @abstractmethod
    def scan(self) -> Iterator[StoredBlock]:
        """Iterate over a consistent snapshot in ascending height order."""
        pass

    def tip(self) -> Optional[StoredBlock]:
        h = self.height()
        return self.get_by_height(h) if h else None

    def close(self) -> None:
        pass


class InMemoryBlockStore(BlockStore):
    """
    In-memory block store.

    WARNING: Not persistent across restarts.

    Writes take a lock; reads are lock-free. Index entries are published
    before the block is appended to the ordered list, and the list append is
    the visibility point for height() and scan().
    """

    def __init__(self):
        self._blocks: List[Block] = []
        self._by_tx: Dict[str, Block] = {}
        self._raw_hashes: Dict[str, int] = {}
        self._lock = threading.Lock()

    def append(self, block: Block) -> None:
        with self._lock:
            if block.record.raw_hash in self._raw_hashes:
                raise DuplicateRecordError(block.record.raw_hash)
            if block.height != len(self._blocks) + 1:
                raise ValueError(f"Height {block.height} does not extend store of height {len(self._blocks)}")
            if block.tx_id in self._by_tx:
                raise ValueError(f"Duplicate tx_id: {block.tx_id}")
            self._by_tx[block.tx_id] = block
            self._raw_hashes[block.record.raw_hash] = block.height
            self._blocks.append(block)

    def get(self, tx_id: str) -> Optional[StoredBlock]:
        return self._by_tx.get(tx_id)

    def get_by_height(self, height: int) -> Optional[StoredBlock]:
        if 1 <= height <= len(self._blocks):
            return self._blocks[height - 1]
        return None

    def contains_raw_hash(self, raw_hash: str) -> bool:
        return raw_hash in self._raw_hashes

    def height(self) -> int:
        return len(self._blocks)

    def scan(self) -> Iterator[StoredBlock]:
        return iter(self._blocks[:])


class SqliteBlockStore(BlockStore):
    """
    SQLite-backed block store.

    Uses one connection per thread (WAL mode lets readers proceed while the
    writer appends). Requires a file path; for a purely in-memory ledger use
    InMemoryBlockStore.
    """

    def __init__(self, db_path: Union[str, Path]):
        if str(db_path) == ":memory:":
            raise ValueError("SqliteBlockStore needs a file path; use InMemoryBlockStore instead")
        self._db_path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=30)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._conn_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS blocks (
                height INTEGER PRIMARY KEY,
                tx_id TEXT NOT NULL UNIQUE,
                raw_hash TEXT NOT NULL UNIQUE,
                previous_hash TEXT NOT NULL,
                block_hash TEXT NOT NULL,
                record_json TEXT NOT NULL,
                appended_at INTEGER DEFAULT (strftime('%s', 'now'))
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_blocks_block_hash
            ON blocks(block_hash);""")

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> StoredBlock:
        try:
            record = Record.from_dict(json.loads(row["record_json"]))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Block %s has an unreadable record: %s", row["height"], e)
            return UnreadableBlock(
                height=row["height"],
                tx_id=row["tx_id"],
                previous_hash=row["previous_hash"],
                block_hash=row["block_hash"],
                error=f"{type(e).__name__}: {e}",
                raw=row["record_json"],
                raw_hash=row["raw_hash"],
            )
        return Block(
            height=row["height"],
            record=record,
            previous_hash=row["previous_hash"],
            block_hash=row["block_hash"],
        )

    def append(self, block: Block) -> None:
        record_json = json.dumps(block.record.to_dict(), sort_keys=True)
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO blocks(height, tx_id, raw_hash, previous_hash, block_hash, record_json) "
                    "VALUES(?,?,?,?,?,?)",
                    (block.height, block.tx_id, block.record.raw_hash,
                     block.previous_hash, block.block_hash, record_json)
                )
        except sqlite3.IntegrityError as e:
            if "raw_hash" in str(e):
                raise DuplicateRecordError(block.record.raw_hash) from e
            raise ValueError(f"Block {block.height} conflicts with stored chain: {e}") from e
        logger.debug("Stored block %d in %s", block.height, self._db_path)

    def get(self, tx_id: str) -> Optional[StoredBlock]:
        cur = self._get_connection().execute("SELECT * FROM blocks WHERE tx_id=?", (tx_id,))
        row = cur.fetchone()
        return self._row_to_block(row) if row else None

    def get_by_height(self, height: int) -> Optional[StoredBlock]:
        cur = self._get_connection().execute("SELECT * FROM blocks WHERE height=?", (height,))
        row = cur.fetchone()
        return self._row_to_block(row) if row else None

    def contains_raw_hash(self, raw_hash: str) -> bool:
        cur = self._get_connection().execute("SELECT 1 FROM blocks WHERE raw_hash=?", (raw_hash,))
        return cur.fetchone() is not None

    def height(self) -> int:
        cur = self._get_connection().execute("SELECT COALESCE(MAX(height), 0) AS h FROM blocks")
        return cur.fetchone()["h"]

    def scan(self) -> Iterator[StoredBlock]:
        # fetchall() pins one snapshot even if appends land mid-iteration
        cur = self._get_connection().execute("SELECT * FROM blocks ORDER BY height ASC")
        rows = cur.fetchall()
        return (self._row_to_block(row) for row in rows)

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._conn_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()


def get_block_store(backend: Optional[str] = None, db_path: Optional[str] = None) -> BlockStore:
    """
    Build the configured block store.

    Args:
        backend: "memory" or "sqlite" (default: IVCHAIN_LEDGER_BACKEND)
        db_path: SQLite file path (default: IVCHAIN_DB_PATH)
    """
    from . import config

    backend = backend or config.LEDGER_BACKEND
    if backend == "sqlite":
        return SqliteBlockStore(db_path or config.DB_PATH)
    if backend == "memory":
        return InMemoryBlockStore()
    raise ValueError(f"Unknown ledger backend: {backend}")
