"""
IVChain Oracle Gate

Admission boundary between untrusted submitters and the ledger.

Admission steps, in order:
1. Freshness: 0 <= now - record.timestamp <= max_staleness_seconds
2. Record hash: declared raw_hash == digest of the vector
3. Signature: the configured oracle signer signed the domain-bound record
4. Single use: raw_hash not yet on the chain (fast pre-check)
5. Validation: the vector passes the statistical ruleset
6. Append: the ledger re-checks single use under its write lock

Steps 1-5 run outside the ledger's write lock. Any failure raises a typed
IVChainError and leaves the ledger untouched.

Only the owner may rotate the oracle signer: a rotation carries the owner's
signature over rotation_payload(), checked through the same SignatureVerifier.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .canonicalization import canonicalize
from .errors import (
    DuplicateRecordError,
    InvalidSignatureError,
    RecordHashMismatchError,
    StaleOrFutureTimestampError,
    UnauthorizedError,
    ValidationError,
)
from .ledger import ChainLedger
from .records import Block, Record
from .signing import Ed25519SignatureVerifier, SignatureVerifier
from .validator import DEFAULT_RULESET, IVRuleset, validate

logger = logging.getLogger(__name__)

DEFAULT_MAX_STALENESS_SECONDS = 600


@dataclass(frozen=True)
class SigningDomain:
    """Separates signatures meant for this oracle from any other use of the key."""
    name: str = "IVChainOracle"
    version: str = "1"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "version": self.version}


DEFAULT_DOMAIN = SigningDomain()


def signing_payload(record: Record, domain: SigningDomain = DEFAULT_DOMAIN) -> bytes:
    """Canonical bytes the oracle signs: CJE({domain, record})."""
    return canonicalize({"domain": domain.to_dict(), "record": record.to_dict()})


def rotation_payload(current_signer: str, new_signer: str, domain: SigningDomain = DEFAULT_DOMAIN) -> bytes:
    """Canonical bytes the owner signs to replace current_signer with new_signer."""
    return canonicalize({
        "action": "update_oracle_signer",
        "current_signer": current_signer,
        "domain": domain.to_dict(),
        "new_signer": new_signer,
    })


class OracleGate:
    """
    Usage:
        gate = OracleGate(ledger, oracle_signer=keypair.public_key_b64)
        block = gate.admit(record, signature)
    """

    def __init__(
        self,
        ledger: ChainLedger,
        oracle_signer: str,
        signature_verifier: Optional[SignatureVerifier] = None,
        rules: IVRuleset = DEFAULT_RULESET,
        max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS,
        domain: SigningDomain = DEFAULT_DOMAIN,
        owner_key: Optional[str] = None
    ):
        if max_staleness_seconds < 0:
            raise ValueError("max_staleness_seconds must be >= 0")
        self.ledger = ledger
        self.signature_verifier = signature_verifier or Ed25519SignatureVerifier()
        self.rules = rules
        self.max_staleness_seconds = max_staleness_seconds
        self.domain = domain
        self.owner_key = owner_key
        self._oracle_signer = oracle_signer
        self._signer_lock = threading.Lock()

    @property
    def oracle_signer(self) -> str:
        return self._oracle_signer

    def update_oracle_signer(self, new_signer: str, authorization: str) -> str:
        """
        Rotate the trusted signer; returns the previous one.

        Args:
            new_signer: Base64 public key of the next oracle signer
            authorization: Base64 owner signature over
                rotation_payload(current signer, new_signer, domain)

        Raises:
            UnauthorizedError: no owner configured, or the signature is not the owner's
            ValueError: if new_signer is empty
        """
        if not new_signer:
            raise ValueError("oracle signer must be non-empty")
        if not self.owner_key:
            raise UnauthorizedError("no owner configured")
        if not authorization:
            raise UnauthorizedError("missing owner signature")
        with self._signer_lock:
            payload = rotation_payload(self._oracle_signer, new_signer, self.domain)
            if not self.signature_verifier.verify_signature(payload, authorization, self.owner_key):
                raise UnauthorizedError()
            old, self._oracle_signer = self._oracle_signer, new_signer
        return old

    def check_timestamp(self, record: Record, now: int) -> None:
        age = now - record.timestamp
        if age < 0 or age > self.max_staleness_seconds:
            raise StaleOrFutureTimestampError(record.timestamp, now, self.max_staleness_seconds)

    def check_record_hash(self, record: Record) -> None:
        computed = record.computed_raw_hash()
        if computed != record.raw_hash:
            raise RecordHashMismatchError(record.raw_hash, computed)

    def check_signature(self, record: Record, signature: str) -> None:
        if not signature:
            raise InvalidSignatureError("missing signature")
        payload = signing_payload(record, self.domain)
        if not self.signature_verifier.verify_signature(payload, signature, self.oracle_signer):
            raise InvalidSignatureError()

    def check_unused(self, record: Record) -> None:
        if self.ledger.contains(record.raw_hash):
            raise DuplicateRecordError(record.raw_hash)

    def check_valid(self, record: Record) -> None:
        result = validate(record.iv, self.rules)
        if not result.accepted:
            raise ValidationError(result.reason)

    def admit(self, record: Record, signature: str, now: Optional[int] = None) -> Block:
        """
        Run every admission check, then append.

        Args:
            record: The submitted record
            signature: Base64 oracle signature over signing_payload(record)
            now: Admission time as unix seconds (default: current time)

        Returns:
            The appended Block

        Raises:
            StaleOrFutureTimestampError, RecordHashMismatchError,
            InvalidSignatureError, DuplicateRecordError, ValidationError
        """
        now = int(time.time()) if now is None else now

        self.check_timestamp(record, now)
        self.check_record_hash(record)
        self.check_signature(record, signature)
        self.check_unused(record)
        self.check_valid(record)

        block = self.ledger.append(record)
        logger.debug("Admitted %s at height %d", record.raw_hash, block.height)
        return block
