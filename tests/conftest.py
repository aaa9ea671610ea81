import time

import pytest
from fastapi.testclient import TestClient

from ivchain.api import app, set_service
from ivchain.oracle import signing_payload
from ivchain.records import create_record
from ivchain.service import IVOracleService
from ivchain.signing import OracleKeyPair


@pytest.fixture
def oracle():
    return OracleKeyPair.generate()


# Fresh in-memory service per test for isolation
@pytest.fixture
def service(oracle):
    svc = IVOracleService(oracle_signer=oracle.public_key_b64)
    set_service(svc)
    yield svc
    set_service(None)
    svc.close()


@pytest.fixture
def client(service):
    return TestClient(app)


@pytest.fixture
def make_submission(oracle):
    """Build a signed /submit body; timestamp defaults to now."""
    def _make(iv, identity="alice", timestamp=None, signer=None):
        ts = int(time.time()) if timestamp is None else timestamp
        record = create_record(identity, f"pk-{identity}", iv, ts)
        return {
            "identity": identity,
            "public_key": record.public_key,
            "iv": list(iv),
            "timestamp": ts,
            "signature": (signer or oracle).sign(signing_payload(record)),
        }
    return _make
