"""
IVChain Oracle Signatures

The core only needs one capability from cryptography:

    verify_signature(canonical_bytes, signature, expected_signer) -> bool

`SignatureVerifier` is that seam. The default implementation is Ed25519
(RFC 8032) via PyNaCl, with signatures and public keys exchanged as
base64 strings. `OracleKeyPair` is the signing side, used by oracle
operators, tools and tests.
"""

import base64
import binascii
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Union

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes (strict)."""
    return base64.b64decode(s.encode('ascii'), validate=True)


class SignatureVerifier(ABC):
    """Pluggable signature check over canonical bytes."""

    @abstractmethod
    def verify_signature(self, canonical_bytes: bytes, signature: str, expected_signer: str) -> bool:
        """
        Returns:
            True only if `signature` over `canonical_bytes` was produced by
            `expected_signer`. Malformed input is a False, never an exception.
        """
        pass


class Ed25519SignatureVerifier(SignatureVerifier):
    """Ed25519 verification. expected_signer is a base64 public key."""

    def verify_signature(self, canonical_bytes: bytes, signature: str, expected_signer: str) -> bool:
        try:
            vk = VerifyKey(b64d(expected_signer))
            vk.verify(canonical_bytes, b64d(signature))
            return True
        except (BadSignatureError, binascii.Error, ValueError, TypeError, AttributeError):
            return False


class CallableSignatureVerifier(SignatureVerifier):
    """Adapter for a plain function with the verify_signature signature."""

    def __init__(self, func: Callable[[bytes, str, str], bool]):
        self._func = func

    def verify_signature(self, canonical_bytes: bytes, signature: str, expected_signer: str) -> bool:
        return bool(self._func(canonical_bytes, signature, expected_signer))


@dataclass
class OracleKeyPair:
    """Ed25519 oracle key pair."""
    kid: str
    signing_key: bytes
    verify_key: bytes
    algorithm: str = "Ed25519"

    @classmethod
    def generate(cls, kid: str = "ivchain-oracle-001") -> "OracleKeyPair":
        sk = SigningKey.generate()
        return cls(kid=kid, signing_key=bytes(sk), verify_key=bytes(sk.verify_key))

    @property
    def public_key_b64(self) -> str:
        return b64e(self.verify_key)

    def sign(self, payload: bytes) -> str:
        """Sign payload, returning a base64 signature."""
        return b64e(SigningKey(self.signing_key).sign(payload).signature)

    def to_trust_entry(self) -> Dict[str, Any]:
        """Public half, in the oracle trust file format."""
        return {
            "kid": self.kid,
            "algorithm": self.algorithm,
            "public_key_b64": self.public_key_b64,
        }

    def to_secret_dict(self) -> Dict[str, Any]:
        return {
            "kid": self.kid,
            "algorithm": self.algorithm,
            "private_key_b64": b64e(self.signing_key),
            "public_key_b64": self.public_key_b64,
        }

    @classmethod
    def from_secret_dict(cls, raw: Dict[str, Any]) -> "OracleKeyPair":
        sk = SigningKey(b64d(raw["private_key_b64"]))
        return cls(kid=raw["kid"], signing_key=bytes(sk), verify_key=bytes(sk.verify_key))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "OracleKeyPair":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_secret_dict(json.load(f))

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_secret_dict(), f, indent=2)
