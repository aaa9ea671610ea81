"""
IVChain Records and Blocks

Record: a signed submission before it enters the chain.
Block:  one immutable ledger entry linking to its predecessor by hash.

Both are frozen dataclasses. A Block's hash is a pure function of its own
fields (height, previous_hash, record); `Block.seal()` is the only place a
block hash is computed for a new block.

UnreadableBlock stands in for a stored block whose record no longer parses,
so readers of a damaged store get a value to report rather than an exception.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from .hashing import block_hash, digest_hex, iv_hash, record_hash
from .vector import IVVector, as_vector


@dataclass(frozen=True)
class Record:
    """
    A submitted IV record.

    raw_hash is the digest of the vector alone and is the single-use key
    of the ledger. It is stored as declared; consistency with `iv` is
    checked by the oracle gate and again by the integrity verifier.
    """
    identity: str
    public_key: str
    iv: IVVector
    timestamp: int
    raw_hash: str

    def __post_init__(self):
        if not isinstance(self.identity, str) or not self.identity:
            raise ValueError("identity must be a non-empty string")
        if not isinstance(self.public_key, str):
            raise ValueError("public_key must be a string")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int) or self.timestamp < 0:
            raise ValueError(f"timestamp must be a non-negative unix time, got {self.timestamp!r}")
        if not isinstance(self.iv, IVVector):
            object.__setattr__(self, "iv", as_vector(self.iv))

    @property
    def record_hash(self) -> str:
        return record_hash(self.to_dict())

    def computed_raw_hash(self) -> str:
        return iv_hash(self.iv)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "public_key": self.public_key,
            "iv": self.iv.to_list(),
            "timestamp": self.timestamp,
            "raw_hash": self.raw_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        return cls(
            identity=data["identity"],
            public_key=data["public_key"],
            iv=IVVector(data["iv"]),
            timestamp=data["timestamp"],
            raw_hash=data["raw_hash"],
        )


def create_record(
    identity: str,
    public_key: str,
    iv: Union[IVVector, Iterable[int]],
    timestamp: int
) -> Record:
    """Build a Record, computing raw_hash from the vector."""
    vec = as_vector(iv)
    return Record(
        identity=identity,
        public_key=public_key,
        iv=vec,
        timestamp=timestamp,
        raw_hash=iv_hash(vec),
    )


@dataclass(frozen=True)
class Block:
    """An appended ledger entry. Owned by the ledger; never mutated."""
    height: int
    record: Record
    previous_hash: str
    block_hash: str

    @classmethod
    def seal(cls, height: int, record: Record, previous_hash: str) -> "Block":
        """Construct a new block, computing its hash."""
        return cls(
            height=height,
            record=record,
            previous_hash=previous_hash,
            block_hash=block_hash(previous_hash, record.to_dict(), height),
        )

    @property
    def tx_id(self) -> str:
        """Transaction id: the hex digest of the block hash."""
        return digest_hex(self.block_hash)

    def compute_hash(self) -> str:
        """Recompute the block hash from stored fields."""
        return block_hash(self.previous_hash, self.record.to_dict(), self.height)

    def to_dict(self, include_units: bool = False) -> Dict[str, Any]:
        record = self.record.to_dict()
        if include_units:
            record["iv_units"] = self.record.iv.to_units()
        return {
            "tx_id": self.tx_id,
            "height": self.height,
            "previous_hash": self.previous_hash,
            "block_hash": self.block_hash,
            "record_hash": self.record.record_hash,
            "record": record,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        """Rebuild a stored block. Derived fields (tx_id, record_hash) are ignored."""
        return cls(
            height=data["height"],
            record=Record.from_dict(data["record"]),
            previous_hash=data["previous_hash"],
            block_hash=data["block_hash"],
        )


@dataclass(frozen=True)
class UnreadableBlock:
    """
    A stored block whose record no longer parses.

    Stores hand these back instead of raising so the chain can still be
    opened, linked past and audited. `raw` keeps the stored record text.
    """
    height: int
    tx_id: str
    previous_hash: str
    block_hash: str
    error: str
    raw: Any = None
    raw_hash: Optional[str] = None

    def to_dict(self, include_units: bool = False) -> Dict[str, Any]:
        return {
            "tx_id": self.tx_id,
            "height": self.height,
            "previous_hash": self.previous_hash,
            "block_hash": self.block_hash,
            "unreadable": self.error,
            "record_raw": self.raw,
        }

    @classmethod
    def from_dict(cls, data: Any, error: Exception) -> "UnreadableBlock":
        if not isinstance(data, dict):
            data = {"record_raw": data}
        height = data.get("height")
        return cls(
            height=height if isinstance(height, int) and not isinstance(height, bool) else 0,
            tx_id=str(data.get("tx_id", "")),
            previous_hash=str(data.get("previous_hash", "")),
            block_hash=str(data.get("block_hash", "")),
            error=f"{type(error).__name__}: {error}",
            raw=data.get("record", data.get("record_raw")),
        )


StoredBlock = Union[Block, UnreadableBlock]


def load_block(data: Any) -> StoredBlock:
    """Rebuild an exported block, or wrap it as UnreadableBlock if it no longer parses."""
    try:
        return Block.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        return UnreadableBlock.from_dict(data, e)
