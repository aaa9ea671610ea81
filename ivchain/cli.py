#!/usr/bin/env python3
"""
IVChain Command Line Interface

Usage:
    ivchain validate 1000 1020 980 1015 985 1025 990
    ivchain validate --units 1.0 1.02 0.98 1.015 0.985 1.025 0.99
    ivchain keygen --output secrets/oracle_key.json --trust trust/oracle_signer.json
    ivchain sign --key <file> --identity <id> --public-key <pk> --iv <v1..v7>
    ivchain submit --db <file> --trust <file> --submission <file>
    ivchain verify --db <file> | --export <file>
    ivchain export --db <file>
    ivchain hash --file <file>
"""

import argparse
import json
import sys
import time
from typing import List, Optional

from .canonicalization import canonicalize
from .hashing import sha256_hash
from .ledger import ChainLedger
from .oracle import SigningDomain, signing_payload
from .records import create_record, load_block
from .service import IVOracleService
from .signing import OracleKeyPair
from .storage import SqliteBlockStore
from .validator import validate
from .vector import IVVector
from .verifier import IntegrityVerifier


def load_json(path: str):
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def _parse_vector(raw: List[str], units: bool) -> IVVector:
    if units:
        return IVVector.from_units(raw)
    return IVVector(int(v) for v in raw)


def cmd_validate(args) -> int:
    """Run the validator on one vector."""
    vec = _parse_vector(args.values, args.units)
    result = validate(vec)
    out = result.to_dict()
    out["iv"] = vec.to_list()
    print(json.dumps(out, indent=2))
    if result.accepted:
        print("\n✓ VALID", file=sys.stderr)
        return 0
    print(f"\n✗ INVALID - {result.message}", file=sys.stderr)
    return 1


def cmd_keygen(args) -> int:
    """Generate an oracle key pair and its trust file."""
    kp = OracleKeyPair.generate(args.key_id)
    kp.save(args.output)
    print(f"Oracle key saved to: {args.output}")
    if args.trust:
        save_json(kp.to_trust_entry(), args.trust)
        print(f"Trust entry saved to: {args.trust}")
    print(f"Public key: {kp.public_key_b64}")
    return 0


def cmd_sign(args) -> int:
    """Build and sign a submission with an oracle key."""
    kp = OracleKeyPair.load(args.key)
    vec = _parse_vector(args.iv, args.units)
    timestamp = args.timestamp if args.timestamp is not None else int(time.time())
    record = create_record(args.identity, args.public_key, vec, timestamp)
    domain = SigningDomain(args.domain, args.domain_version)
    submission = {
        "identity": record.identity,
        "public_key": record.public_key,
        "iv": record.iv.to_list(),
        "timestamp": record.timestamp,
        "signature": kp.sign(signing_payload(record, domain)),
    }
    if args.output:
        save_json(submission, args.output)
        print(f"Submission saved to: {args.output}")
    else:
        print(json.dumps(submission, indent=2))
    return 0


def cmd_submit(args) -> int:
    """Admit a signed submission into a SQLite ledger."""
    trust = load_json(args.trust)
    submission = load_json(args.submission)
    service = IVOracleService(
        oracle_signer=trust["public_key_b64"],
        store=SqliteBlockStore(args.db),
        domain=SigningDomain(args.domain, args.domain_version),
    )
    try:
        result = service.submit(
            submission["identity"],
            submission["public_key"],
            submission["iv"],
            submission["timestamp"],
            submission["signature"],
        )
    finally:
        service.close()
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.accepted else 1


def cmd_verify(args) -> int:
    """Verify a ledger database or a JSON export."""
    verifier = IntegrityVerifier()
    if args.export:
        blocks = [load_block(b) for b in load_json(args.export)]
        report = verifier.verify_blocks(blocks)
    else:
        store = SqliteBlockStore(args.db)
        try:
            report = verifier.verify(ChainLedger(store, check_genesis=False))
        finally:
            store.close()

    print(json.dumps(report.to_dict(), indent=2))
    if report.ok:
        print(f"\n✓ {report.status} ({report.checked} blocks)", file=sys.stderr)
        return 0
    print(f"\n✗ INVALID: {report.status}", file=sys.stderr)
    return 1


def cmd_export(args) -> int:
    """Dump every block as JSON."""
    store = SqliteBlockStore(args.db)
    try:
        blocks = [b.to_dict() for b in store.scan()]
    finally:
        store.close()
    if args.output:
        save_json(blocks, args.output)
        print(f"{len(blocks)} blocks exported to: {args.output}")
    else:
        print(json.dumps(blocks, indent=2))
    return 0


def cmd_hash(args) -> int:
    """Hash a JSON file in canonical form."""
    print(sha256_hash(canonicalize(load_json(args.file))))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ivchain",
        description="IVChain oracle CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ivchain validate 1000 1020 980 1015 985 1025 990
  ivchain keygen -o secrets/oracle_key.json -t trust/oracle_signer.json
  ivchain sign -k secrets/oracle_key.json -i alice -p pk-alice --iv 1000 1020 980 1015 985 1025 990
  ivchain verify --db data/ivchain.db
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    validate_parser = subparsers.add_parser("validate", help="Validate a 7-value vector")
    validate_parser.add_argument("values", nargs=7, help="Seven values (scaled x1000 unless --units)")
    validate_parser.add_argument("-u", "--units", action="store_true", help="Values are real units")

    keygen_parser = subparsers.add_parser("keygen", help="Generate oracle key pair")
    keygen_parser.add_argument("-o", "--output", required=True, help="Output file for the secret key")
    keygen_parser.add_argument("-t", "--trust", help="Output file for the public trust entry")
    keygen_parser.add_argument("-k", "--key-id", default="ivchain-oracle-001", help="Key identifier")

    for name, help_text in (("sign", "Sign a submission"), ("submit", "Submit to a SQLite ledger")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--domain", default="IVChainOracle", help="Signing domain name")
        p.add_argument("--domain-version", default="1", help="Signing domain version")

    sign_parser = subparsers.choices["sign"]
    sign_parser.add_argument("-k", "--key", required=True, help="Oracle secret key file")
    sign_parser.add_argument("-i", "--identity", required=True)
    sign_parser.add_argument("-p", "--public-key", required=True)
    sign_parser.add_argument("--iv", nargs=7, required=True, help="Seven values")
    sign_parser.add_argument("-u", "--units", action="store_true", help="Values are real units")
    sign_parser.add_argument("--timestamp", type=int, help="Unix time (default: now)")
    sign_parser.add_argument("-o", "--output", help="Output file for the submission")

    submit_parser = subparsers.choices["submit"]
    submit_parser.add_argument("--db", required=True, help="SQLite ledger file")
    submit_parser.add_argument("-t", "--trust", required=True, help="Oracle trust file")
    submit_parser.add_argument("-s", "--submission", required=True, help="Signed submission JSON")

    verify_parser = subparsers.add_parser("verify", help="Verify chain integrity")
    source = verify_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--db", help="SQLite ledger file")
    source.add_argument("--export", help="JSON export produced by 'ivchain export'")

    export_parser = subparsers.add_parser("export", help="Export the chain as JSON")
    export_parser.add_argument("--db", required=True, help="SQLite ledger file")
    export_parser.add_argument("-o", "--output", help="Output file")

    hash_parser = subparsers.add_parser("hash", help="Compute canonical hash of a JSON file")
    hash_parser.add_argument("-f", "--file", required=True, help="JSON file to hash")

    return parser


COMMANDS = {
    "validate": cmd_validate,
    "keygen": cmd_keygen,
    "sign": cmd_sign,
    "submit": cmd_submit,
    "verify": cmd_verify,
    "export": cmd_export,
    "hash": cmd_hash,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
