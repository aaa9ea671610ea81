"""
IVChain Hashing

All digests use SHA-256 over canonical JSON, rendered as lowercase hex with
an algorithm prefix ("sha256:abcdef..."). Hashes are content addresses, not
authenticators; authenticity comes from the oracle signature.
"""

import hashlib
import hmac
from typing import Any, Dict, Iterable, Union

from .canonicalization import canonicalize

HASH_PREFIX = "sha256:"

# previous_hash of the block at height 1
GENESIS_HASH = HASH_PREFIX + "0" * 64


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash in IVChain format.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def digest_hex(prefixed_hash: str) -> str:
    """Strip the algorithm prefix: "sha256:ab.." -> "ab..". """
    if not prefixed_hash.startswith(HASH_PREFIX):
        raise ValueError(f"Unsupported hash format: {prefixed_hash[:16]}")
    return prefixed_hash[len(HASH_PREFIX):]


def iv_hash(values: Iterable[int]) -> str:
    """
    Digest of an IV vector alone.

    This is the record's raw_hash and the ledger's single-use key, so it
    depends on the seven scaled values and nothing else.
    """
    return sha256_hash(canonicalize(list(values)))


def record_hash(record_body: Dict[str, Any]) -> str:
    """record_hash = SHA-256(CJE(record))"""
    return sha256_hash(canonicalize(record_body))


def block_hash(previous_hash: str, record_body: Dict[str, Any], height: int) -> str:
    """
    block_hash = SHA-256(CJE({height, previous_hash, record}))

    The canonical object is an unambiguous encoding of the concatenation
    previous_hash || record || height.
    """
    if height < 1:
        raise ValueError(f"Block height starts at 1, got {height}")
    return sha256_hash(canonicalize({
        "height": height,
        "previous_hash": previous_hash,
        "record": record_body,
    }))


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two hash strings in constant time."""
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def verify_hash(declared_hash: str, data: Union[bytes, str]) -> bool:
    """Recompute a hash from source data and compare with the declared one."""
    if not declared_hash.startswith(HASH_PREFIX):
        return False
    return constant_time_equals(sha256_hash(data), declared_hash)
