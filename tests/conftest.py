"""
Shared fixtures: a protocol wired to a plaintext stand-in for the CKKS
engine, so protocol tests run without TenSEAL.
"""

import hashlib
from dataclasses import dataclass

import pytest

from oracle_protocol.models import ProtocolConfig
from oracle_protocol.oracle_signing import OracleSigner
from oracle_protocol.protocol import TheoremOracleProtocol
from prover_server.oracle_relay import LocalDecryptionOracle

OWNER = "owner"
PROVIDER = "alice"
DOMAIN = b"fhe-theorem-oracle/test-instance"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class PlainStore:
    """Handle -> plaintext 'ciphertext'"""

    def __init__(self):
        self.values = {}

    def put(self, values, run, index) -> bytes:
        handle = hashlib.sha256(repr((values, run, index)).encode()).digest()
        self.values[handle] = values
        return handle

    def get(self, handle):
        return self.values[handle]

    def __contains__(self, handle):
        return handle in self.values


class PlainProofEngine:
    """Computes proof search outputs in the clear, fresh handles per run"""

    def __init__(self, store: PlainStore):
        self.store = store
        self.runs = 0

    def run(self, encrypted_input, tag):
        if tag != "proof_search":
            raise ValueError(f"Unknown computation: {tag}")
        self.runs += 1
        values = list(encrypted_input["values"])
        outputs = [[float(sum(values))], [sum(values) / len(values)]]
        return [self.store.put(out, self.runs, i) for i, out in enumerate(outputs)]


class PlainDecryptor:
    def decrypt(self, values):
        return list(values)


@dataclass
class Stack:
    protocol: TheoremOracleProtocol
    oracle: LocalDecryptionOracle
    signer: OracleSigner
    engine: PlainProofEngine
    store: PlainStore
    clock: FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stack(clock):
    store = PlainStore()
    engine = PlainProofEngine(store)
    signer = OracleSigner(DOMAIN)
    oracle = LocalDecryptionOracle(PlainDecryptor(), store, signer, first_request_id=42)

    protocol = TheoremOracleProtocol(
        config=ProtocolConfig(owner=OWNER, cooldown_seconds=60.0),
        engine=engine,
        dispatcher=oracle,
        domain_tag=DOMAIN,
        clock=clock
    )
    protocol.register_oracle_key(OWNER, signer.get_public_key_pem())
    oracle.attach(protocol)
    return Stack(protocol, oracle, signer, engine, store, clock)


@pytest.fixture
def ready(stack):
    """Batch 1 open and PROVIDER admitted"""
    stack.protocol.open_batch(OWNER)
    stack.protocol.add_provider(OWNER, PROVIDER)
    return stack


def theorem_input(*values):
    return {"values": list(values) or [3.0, 5.0, 8.0]}
