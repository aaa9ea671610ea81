"""
IVChain error taxonomy.

Every rejection is a typed exception carrying a RejectCode. Admission
errors are raised before any ledger mutation, so a failed submission never
changes ledger state.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .validator import ValidationReason


class RejectCode(str, Enum):
    """Stable error codes exposed to callers."""
    VALIDATION_FAILED = "ValidationFailed"
    DUPLICATE_RECORD = "DuplicateRecord"
    STALE_OR_FUTURE_TIMESTAMP = "StaleOrFutureTimestamp"
    INVALID_SIGNATURE = "InvalidSignature"
    RECORD_HASH_MISMATCH = "RecordHashMismatch"
    NOT_FOUND = "NotFound"
    INTEGRITY_VIOLATION = "IntegrityViolation"
    GENESIS_MISSING = "GenesisMissing"
    INVALID_RECORD = "InvalidRecord"
    UNAUTHORIZED = "Unauthorized"


class IVChainError(Exception):
    """Base class for all IVChain errors."""

    code: RejectCode

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        d = {"code": self.code.value, "reason": self.message}
        if self.details:
            d["details"] = self.details
        return d


class ValidationError(IVChainError):
    """The vector failed the statistical ruleset."""

    code = RejectCode.VALIDATION_FAILED

    def __init__(self, reason: ValidationReason):
        super().__init__(reason.message, {"validation_reason": reason.value})
        self.reason = reason


class DuplicateRecordError(IVChainError):
    """An IV hash may be recorded only once."""

    code = RejectCode.DUPLICATE_RECORD

    def __init__(self, raw_hash: str):
        super().__init__("IV hash already used", {"raw_hash": raw_hash})
        self.raw_hash = raw_hash


class StaleOrFutureTimestampError(IVChainError):
    code = RejectCode.STALE_OR_FUTURE_TIMESTAMP

    def __init__(self, timestamp: int, now: int, max_staleness: int):
        if timestamp > now:
            message = "Timestamp is in the future"
        else:
            message = "Report too old"
        super().__init__(message, {
            "timestamp": timestamp,
            "now": now,
            "max_staleness_seconds": max_staleness,
        })


class InvalidSignatureError(IVChainError):
    code = RejectCode.INVALID_SIGNATURE

    def __init__(self, details: Optional[str] = None):
        super().__init__("Invalid oracle signature", {"detail": details} if details else None)


class RecordHashMismatchError(IVChainError):
    """Declared raw_hash does not match the vector it claims to digest."""

    code = RejectCode.RECORD_HASH_MISMATCH

    def __init__(self, declared: str, computed: str):
        super().__init__("IV hash mismatch", {"declared": declared, "computed": computed})


class NotFoundError(IVChainError, KeyError):
    code = RejectCode.NOT_FOUND

    def __init__(self, tx_id: str):
        IVChainError.__init__(self, "Record not found", {"tx_id": tx_id})
        self.tx_id = tx_id

    def __str__(self) -> str:
        return f"Record not found: {self.tx_id}"


class GenesisMissingError(IVChainError):
    """The store holds blocks but the first one does not start at the genesis sentinel."""

    code = RejectCode.GENESIS_MISSING

    def __init__(self, observed: Optional[str] = None):
        super().__init__("Chain does not link to genesis", {"observed": observed} if observed else None)


class IntegrityViolationError(IVChainError):
    """Raised only on explicit request; the verifier itself reports, never raises."""

    code = RejectCode.INTEGRITY_VIOLATION

    def __init__(self, report):
        super().__init__(report.status, report.to_dict())
        self.report = report


class InvalidRecordError(IVChainError):
    """Malformed submission: wrong vector length, non-integer values, empty identity."""

    code = RejectCode.INVALID_RECORD

    def __init__(self, detail: str):
        super().__init__("Malformed record", {"detail": detail})


class UnauthorizedError(IVChainError):
    """An owner-only operation was attempted without a valid owner signature."""

    code = RejectCode.UNAUTHORIZED

    def __init__(self, detail: str = "caller is not the owner"):
        super().__init__("Unauthorized", {"detail": detail})
