"""
IVChain Integrity Verifier

Walks the ledger in ascending height order and re-derives everything that
can be re-derived:

1. Height continuity (1, 2, 3, ... with no gaps)
2. Block hash: recomputed from (height, previous_hash, record) and compared
   with the stored block_hash
3. Linkage: stored previous_hash equals the stored block_hash of the block
   before it (GENESIS_HASH for height 1)
4. Record hash: raw_hash recomputed from the stored vector
5. Single use: no raw_hash appears twice
6. Validation: the stored vector is re-run through the validator

A block whose record no longer parses (UnreadableBlock) is reported as
UNREADABLE_BLOCK. Its stored hashes still take part in the height and
linkage checks, so the walk continues past it.

Policy: aggregate all issues rather than stop at the first one.
`invalid_count` counts distinct invalid blocks and `first_bad_height` is the
lowest of them. Because linkage is checked against the predecessor's stored
hash, an in-place edit of one block's content flags that block alone; an
edit that also rewrites its stored hash breaks the link of the next block.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .errors import IntegrityViolationError
from .hashing import GENESIS_HASH
from .records import Block, StoredBlock, UnreadableBlock
from .validator import DEFAULT_RULESET, IVRuleset, validate

VALID_STATUS = "All voiceprints valid"


class IntegrityIssue(str, Enum):
    HEIGHT_GAP = "HEIGHT_GAP"
    BLOCK_HASH_MISMATCH = "BLOCK_HASH_MISMATCH"
    BROKEN_LINK = "BROKEN_LINK"
    RAW_HASH_MISMATCH = "RAW_HASH_MISMATCH"
    DUPLICATE_RAW_HASH = "DUPLICATE_RAW_HASH"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNREADABLE_BLOCK = "UNREADABLE_BLOCK"


@dataclass
class BlockIssue:
    """A single finding against one block."""
    height: int
    tx_id: str
    issue: IntegrityIssue
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "tx_id": self.tx_id,
            "issue": self.issue.value,
            "details": self.details,
        }


@dataclass
class ChainVerificationReport:
    """Result of walking the whole chain."""
    checked: int
    issues: List[BlockIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    @property
    def invalid_heights(self) -> List[int]:
        return sorted({i.height for i in self.issues})

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_heights)

    @property
    def first_bad_height(self) -> Optional[int]:
        heights = self.invalid_heights
        return heights[0] if heights else None

    @property
    def status(self) -> str:
        if self.ok:
            return VALID_STATUS
        return f"{self.invalid_count} invalid record(s) found"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "checked": self.checked,
            "invalid_count": self.invalid_count,
            "first_bad_height": self.first_bad_height,
            "status": self.status,
            "details": [i.to_dict() for i in self.issues],
        }


class IntegrityVerifier:
    """
    Post-hoc chain auditor.

    Usage:
        report = IntegrityVerifier().verify(ledger)
        if not report.ok:
            ...
    """

    def __init__(self, rules: IVRuleset = DEFAULT_RULESET):
        self.rules = rules

    def verify(self, ledger) -> ChainVerificationReport:
        """Verify every block of a ChainLedger (or anything with blocks())."""
        return self.verify_blocks(ledger.blocks())

    def verify_blocks(self, blocks: Iterable[StoredBlock]) -> ChainVerificationReport:
        issues: List[BlockIssue] = []
        expected_height = 1
        expected_previous = GENESIS_HASH
        seen_raw: Dict[str, int] = {}
        checked = 0

        for block in blocks:
            checked += 1
            tx_id = _safe_tx_id(block)

            def flag(issue: IntegrityIssue, **details):
                issues.append(BlockIssue(block.height, tx_id, issue, details))

            if block.height != expected_height:
                flag(IntegrityIssue.HEIGHT_GAP, expected=expected_height, observed=block.height)

            if block.previous_hash != expected_previous:
                flag(IntegrityIssue.BROKEN_LINK, expected=expected_previous, stored=block.previous_hash)

            if isinstance(block, UnreadableBlock):
                flag(IntegrityIssue.UNREADABLE_BLOCK, error=block.error)
                if block.raw_hash:
                    seen_raw.setdefault(block.raw_hash, block.height)
            else:
                self._check_content(block, flag, seen_raw)

            expected_height = block.height + 1
            expected_previous = block.block_hash

        return ChainVerificationReport(checked=checked, issues=issues)

    def _check_content(self, block: Block, flag, seen_raw: Dict[str, int]) -> None:
        """Hash, single-use and validation checks for a block that parsed."""
        try:
            recomputed = block.compute_hash()
        except ValueError:
            recomputed = None
        if recomputed != block.block_hash:
            flag(IntegrityIssue.BLOCK_HASH_MISMATCH, computed=recomputed, stored=block.block_hash)

        record = block.record
        computed_raw = record.computed_raw_hash()
        if computed_raw != record.raw_hash:
            flag(IntegrityIssue.RAW_HASH_MISMATCH, computed=computed_raw, stored=record.raw_hash)

        if record.raw_hash in seen_raw:
            flag(IntegrityIssue.DUPLICATE_RAW_HASH, first_seen_height=seen_raw[record.raw_hash])
        else:
            seen_raw[record.raw_hash] = block.height

        result = validate(record.iv, self.rules)
        if not result.accepted:
            flag(IntegrityIssue.VALIDATION_FAILED, reason=result.reason.value, message=result.message)

    def assert_valid(self, ledger) -> ChainVerificationReport:
        """
        Raises:
            IntegrityViolationError: if any block is invalid
        """
        report = self.verify(ledger)
        if not report.ok:
            raise IntegrityViolationError(report)
        return report


def _safe_tx_id(block: StoredBlock) -> str:
    # a corrupted block_hash may have lost its prefix
    try:
        return block.tx_id
    except ValueError:
        return block.block_hash


def verify_chain(ledger, rules: IVRuleset = DEFAULT_RULESET) -> ChainVerificationReport:
    """Convenience wrapper around IntegrityVerifier.verify()."""
    return IntegrityVerifier(rules).verify(ledger)
