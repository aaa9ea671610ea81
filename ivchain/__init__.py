"""
IVChain Oracle Reference Implementation

Version: 1.0.0

An append-only, hash-linked ledger of voiceprint (IV) vectors admitted
through a signing oracle.

Every submission passes one gate before it can reach the chain:
    fresh timestamp -> matching IV hash -> oracle signature -> unused hash -> statistical validation

A rejected submission never changes ledger state. Accepted records are
sealed into blocks whose hashes chain back to a fixed genesis value, and the
integrity verifier can re-derive every hash after the fact.

Usage:
    from ivchain import (
        IVOracleService,
        OracleKeyPair,
        create_record,
        signing_payload,
    )

    oracle = OracleKeyPair.generate()
    service = IVOracleService(oracle_signer=oracle.public_key_b64)

    record = create_record("alice", "pk-alice", [1000, 1020, 980, 1015, 985, 1025, 990], ts)
    result = service.submit(
        record.identity, record.public_key, record.iv, record.timestamp,
        oracle.sign(signing_payload(record)),
    )

    if result.accepted:
        block = service.fetch(result.tx_id)
    else:
        print(result.code, result.reason)

    report = service.verify_chain()
    print(report.status)
"""

__version__ = "1.0.0"

# Vectors and validation
from .vector import IVVector, IV_LENGTH, SCALE
from .validator import (
    DEFAULT_RULESET,
    IVRuleset,
    ValidationReason,
    ValidationResult,
    validate,
)

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    GENESIS_HASH,
    sha256_hash,
    iv_hash,
    record_hash,
    block_hash,
    verify_hash,
)

# Errors
from .errors import (
    RejectCode,
    IVChainError,
    ValidationError,
    DuplicateRecordError,
    StaleOrFutureTimestampError,
    InvalidSignatureError,
    RecordHashMismatchError,
    NotFoundError,
    GenesisMissingError,
    IntegrityViolationError,
    InvalidRecordError,
    UnauthorizedError,
)

# Records, storage and ledger
from .records import Record, Block, UnreadableBlock, StoredBlock, create_record, load_block
from .storage import BlockStore, InMemoryBlockStore, SqliteBlockStore, get_block_store
from .ledger import ChainLedger

# Oracle and signing
from .signing import (
    SignatureVerifier,
    Ed25519SignatureVerifier,
    CallableSignatureVerifier,
    OracleKeyPair,
)
from .oracle import OracleGate, SigningDomain, rotation_payload, signing_payload

# Verifier
from .verifier import (
    IntegrityVerifier,
    IntegrityIssue,
    BlockIssue,
    ChainVerificationReport,
    verify_chain,
)

# Service facade
from .service import IVOracleService, SubmissionResult


__all__ = [
    # Version
    "__version__",

    # Vectors
    "IVVector",
    "IV_LENGTH",
    "SCALE",

    # Validation
    "DEFAULT_RULESET",
    "IVRuleset",
    "ValidationReason",
    "ValidationResult",
    "validate",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Hashing
    "GENESIS_HASH",
    "sha256_hash",
    "iv_hash",
    "record_hash",
    "block_hash",
    "verify_hash",

    # Errors
    "RejectCode",
    "IVChainError",
    "ValidationError",
    "DuplicateRecordError",
    "StaleOrFutureTimestampError",
    "InvalidSignatureError",
    "RecordHashMismatchError",
    "NotFoundError",
    "GenesisMissingError",
    "IntegrityViolationError",
    "InvalidRecordError",
    "UnauthorizedError",

    # Ledger
    "Record",
    "Block",
    "UnreadableBlock",
    "StoredBlock",
    "create_record",
    "load_block",
    "BlockStore",
    "InMemoryBlockStore",
    "SqliteBlockStore",
    "get_block_store",
    "ChainLedger",

    # Oracle
    "SignatureVerifier",
    "Ed25519SignatureVerifier",
    "CallableSignatureVerifier",
    "OracleKeyPair",
    "OracleGate",
    "SigningDomain",
    "signing_payload",
    "rotation_payload",

    # Verifier
    "IntegrityVerifier",
    "IntegrityIssue",
    "BlockIssue",
    "ChainVerificationReport",
    "verify_chain",

    # Service
    "IVOracleService",
    "SubmissionResult",
]
