"""
IVChain Oracle Service

Facade consumed by front-ends (HTTP, CLI):

    submit(identity, public_key, iv_vector, timestamp, signature) -> SubmissionResult
    fetch(tx_id)   -> Block            (raises NotFoundError)
    verify_chain() -> ChainVerificationReport

submit() never raises for a rejected submission: admission errors come back
as a SubmissionResult carrying the RejectCode and reason.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from . import config
from .errors import InvalidRecordError, IVChainError, RejectCode, UnauthorizedError
from .ledger import ChainLedger
from .logging_config import AuditLogger, audit_log
from .oracle import OracleGate, SigningDomain
from .records import Block, Record, create_record
from .signing import SignatureVerifier
from .storage import BlockStore, get_block_store
from .validator import DEFAULT_RULESET, IVRuleset
from .verifier import ChainVerificationReport, IntegrityVerifier


@dataclass
class SubmissionResult:
    """Typed outcome of one submission."""
    accepted: bool
    tx_id: Optional[str] = None
    height: Optional[int] = None
    block_hash: Optional[str] = None
    record_hash: Optional[str] = None
    code: Optional[RejectCode] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def stored(cls, block: Block) -> "SubmissionResult":
        return cls(
            accepted=True,
            tx_id=block.tx_id,
            height=block.height,
            block_hash=block.block_hash,
            record_hash=block.record.record_hash,
        )

    @classmethod
    def rejected(cls, error: IVChainError) -> "SubmissionResult":
        return cls(accepted=False, code=error.code, reason=error.message, details=dict(error.details))

    def to_dict(self) -> Dict[str, Any]:
        if self.accepted:
            return {
                "accepted": True,
                "tx_id": self.tx_id,
                "height": self.height,
                "block_hash": self.block_hash,
                "record_hash": self.record_hash,
            }
        return {
            "accepted": False,
            "code": self.code.value,
            "reason": self.reason,
            "details": self.details,
        }


class IVOracleService:
    """
    Wires ledger, oracle gate and verifier together.

    Usage:
        service = IVOracleService(oracle_signer=keypair.public_key_b64)
        result = service.submit("alice", pubkey, [1000, 1020, 980, 1015, 985, 1025, 990], ts, sig)
        if result.accepted:
            block = service.fetch(result.tx_id)
    """

    def __init__(
        self,
        oracle_signer: str,
        store: Optional[BlockStore] = None,
        signature_verifier: Optional[SignatureVerifier] = None,
        rules: IVRuleset = DEFAULT_RULESET,
        max_staleness_seconds: int = config.MAX_STALENESS_SECONDS,
        domain: Optional[SigningDomain] = None,
        audit: Optional[AuditLogger] = None,
        owner_key: Optional[str] = None
    ):
        self.ledger = ChainLedger(store)
        self.gate = OracleGate(
            self.ledger,
            oracle_signer=oracle_signer,
            signature_verifier=signature_verifier,
            rules=rules,
            max_staleness_seconds=max_staleness_seconds,
            domain=domain or SigningDomain(config.SIGNING_DOMAIN, config.SIGNING_DOMAIN_VERSION),
            owner_key=owner_key,
        )
        self.verifier = IntegrityVerifier(rules)
        self.audit = audit or audit_log

    @classmethod
    def from_config(cls, oracle_signer: Optional[str] = None, owner_key: Optional[str] = None) -> "IVOracleService":
        """
        Build a service from environment configuration and the oracle trust file.

        The trust file may also carry "owner_public_key_b64", the key allowed
        to rotate the oracle signer.
        """
        if oracle_signer is None:
            trust = config.load_oracle_trust()
            oracle_signer = trust["public_key_b64"]
            owner_key = owner_key or trust.get("owner_public_key_b64")
        return cls(oracle_signer=oracle_signer, store=get_block_store(), owner_key=owner_key)

    def build_record(
        self,
        identity: str,
        public_key: str,
        iv_vector: Iterable[int],
        timestamp: int
    ) -> Record:
        """
        Raises:
            InvalidRecordError: for malformed input
        """
        try:
            return create_record(identity, public_key, iv_vector, timestamp)
        except (ValueError, TypeError) as e:
            raise InvalidRecordError(str(e)) from e

    def submit(
        self,
        identity: str,
        public_key: str,
        iv_vector: Iterable[int],
        timestamp: int,
        signature: str,
        now: Optional[int] = None
    ) -> SubmissionResult:
        """Build, admit and store a record."""
        try:
            record = self.build_record(identity, public_key, iv_vector, timestamp)
        except InvalidRecordError as e:
            self.audit.submission_rejected(e.code.value, e.message)
            return SubmissionResult.rejected(e)
        return self.submit_record(record, signature, now)

    def submit_record(self, record: Record, signature: str, now: Optional[int] = None) -> SubmissionResult:
        """Admit an already-built record (raw_hash as declared by the caller)."""
        self.audit.submission_received(record.identity, record.raw_hash)
        try:
            block = self.gate.admit(record, signature, now)
        except IVChainError as e:
            self.audit.submission_rejected(e.code.value, e.message, record.raw_hash)
            return SubmissionResult.rejected(e)

        self.audit.submission_accepted(block.tx_id, block.height, block.block_hash)
        return SubmissionResult.stored(block)

    def fetch(self, tx_id: str) -> Block:
        """
        Raises:
            NotFoundError: if tx_id is unknown
        """
        return self.ledger.get(tx_id)

    def verify_chain(self) -> ChainVerificationReport:
        """Walk the full chain; every issue is also audited at CRITICAL."""
        report = self.verifier.verify(self.ledger)
        for issue in report.issues:
            self.audit.integrity_violation(issue.height, issue.issue.value, tx_id=issue.tx_id, details=issue.details)
        self.audit.chain_verified(report.checked, report.invalid_count)
        return report

    def total_records(self) -> int:
        return self.ledger.height()

    @property
    def oracle_signer(self) -> str:
        return self.gate.oracle_signer

    def update_oracle_signer(self, new_signer: str, authorization: str) -> None:
        """
        Owner-only signer rotation.

        Raises:
            UnauthorizedError: if authorization is not the owner's signature
        """
        try:
            old = self.gate.update_oracle_signer(new_signer, authorization)
        except UnauthorizedError as e:
            self.audit.oracle_signer_update_denied(new_signer, e.details.get("detail", ""))
            raise
        self.audit.oracle_signer_updated(old, new_signer)

    def close(self) -> None:
        self.ledger.store.close()
