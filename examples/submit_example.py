#!/usr/bin/env python3
"""
IVChain Example - Oracle Submission Flow

Generates an oracle key, submits a good voiceprint, then tries a handful of
bad ones (out of range, steep ramp, replay, forged signature) and finally
verifies the chain.

Run with: python examples/submit_example.py
"""

import json
import time
from typing import List

from ivchain import (
    IVOracleService,
    OracleKeyPair,
    SubmissionResult,
    create_record,
    signing_payload,
)


def good_voiceprint() -> List[int]:
    # 1.0, 1.02, 0.98, 1.015, 0.985, 1.025, 0.99
    return [1000, 1020, 980, 1015, 985, 1025, 990]


def out_of_range_voiceprint() -> List[int]:
    return [50, 3500, 10, 4000, 80, 5000, 30]


def ramp_voiceprint() -> List[int]:
    return [100, 200, 300, 400, 500, 600, 700]


def submit(service: IVOracleService, oracle: OracleKeyPair, identity: str, iv: List[int]) -> SubmissionResult:
    record = create_record(identity, f"pk-{identity}", iv, int(time.time()))
    signature = oracle.sign(signing_payload(record))
    return service.submit(record.identity, record.public_key, record.iv, record.timestamp, signature)


def show(label: str, result: SubmissionResult) -> None:
    if result.accepted:
        print(f"  ✓ {label}: stored at height {result.height} (tx {result.tx_id[:16]}...)")
    else:
        print(f"  ✗ {label}: {result.code.value} - {result.reason}")


def main():
    print("=" * 70)
    print("IVChain Oracle - Submission Flow")
    print("=" * 70)

    oracle = OracleKeyPair.generate()
    service = IVOracleService(oracle_signer=oracle.public_key_b64)
    print(f"\nOracle signer: {oracle.public_key_b64}")

    print("\nSubmissions:")
    first = submit(service, oracle, "alice", good_voiceprint())
    show("good voiceprint", first)
    show("out of range", submit(service, oracle, "bob", out_of_range_voiceprint()))
    show("monotonic ramp", submit(service, oracle, "carol", ramp_voiceprint()))
    show("replayed vector", submit(service, oracle, "mallory", good_voiceprint()))

    rogue = OracleKeyPair.generate("rogue")
    show("rogue signer", submit(service, rogue, "eve", [v + 7 for v in good_voiceprint()]))

    print("\nStored record:")
    print(json.dumps(service.fetch(first.tx_id).to_dict(include_units=True), indent=2))

    report = service.verify_chain()
    print(f"\nChain: {report.status} ({report.checked} blocks)")


if __name__ == "__main__":
    main()
