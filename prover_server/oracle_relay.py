"""
Local Decryption Oracle
=======================
In-process stand-in for the off-process decryption oracle.

The oracle is the only party holding the secret FHE context. It:
1. Accepts (handles, callback selector) and returns a fresh request id
2. Decrypts the referenced ciphertexts when asked to respond
3. Encodes the cleartexts with the fixed result layout
4. Signs (request id, payload) and invokes the callback

Delivery only happens when deliver() is called, so undelivered and
late callbacks can be exercised on purpose.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from oracle_protocol.errors import ProtocolError
from oracle_protocol.oracle_signing import OracleSigner
from oracle_protocol.payload_codec import encode_proof_result

UINT32_MAX = 2**32 - 1

# decrypted output vectors, in handle order -> cleartext payload
ResultEncoder = Callable[[List[List[float]]], bytes]


def encode_decrypted_proof_result(decrypted: List[List[float]]) -> bytes:
    """Map proof search outputs onto {result_value, result_flag}"""
    if len(decrypted) != 2:
        raise ValueError(f"Proof search yields 2 outputs, got {len(decrypted)}")
    steps = min(max(int(round(decrypted[0][0])), 0), UINT32_MAX)
    return encode_proof_result(steps, decrypted[1][0] > 0.5)


@dataclass
class DecryptionJob:
    """One decryption request held by the oracle"""
    request_id: int
    handles: Tuple[bytes, ...]
    callback_selector: str
    requested_at: str
    delivered: bool = False

    def to_dict(self) -> dict:
        return {
            'request_id': self.request_id,
            'handles': [h.hex() for h in self.handles],
            'callback_selector': self.callback_selector,
            'requested_at': self.requested_at,
            'delivered': self.delivered
        }


@dataclass
class OracleResponse:
    """Signed callback arguments"""
    request_id: int
    payload: bytes
    proof: bytes


@dataclass
class DeliveryResult:
    request_id: int
    event: Any = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class LocalDecryptionOracle:
    """
    Trusted decryptor with the secret context.

    Args:
        fhe_engine: Engine holding the secret key (anything with decrypt())
        store: CiphertextStore shared with the computation engine
        signer: OracleSigner whose public key the protocol owner trusts
    """

    def __init__(self,
                 fhe_engine,
                 store,
                 signer: OracleSigner,
                 result_encoder: ResultEncoder = encode_decrypted_proof_result,
                 first_request_id: int = 1):
        self.fhe_engine = fhe_engine
        self.store = store
        self.signer = signer
        self.result_encoder = result_encoder
        self.jobs: Dict[int, DecryptionJob] = {}
        self._ids = itertools.count(first_request_id)
        self._target = None

    def attach(self, target):
        """Set the object whose callback selector methods get invoked"""
        self._target = target

    def request_decryption(self, handles: Sequence[bytes], callback_selector: str) -> int:
        """
        Accept a decryption request.

        Raises:
            ValueError: A handle is not in the ciphertext store
        """
        handles = tuple(handles)
        for handle in handles:
            if handle not in self.store:
                raise ValueError(f"Unknown ciphertext handle {handle.hex()}")

        request_id = next(self._ids)
        self.jobs[request_id] = DecryptionJob(
            request_id=request_id,
            handles=handles,
            callback_selector=callback_selector,
            requested_at=datetime.now().isoformat()
        )
        return request_id

    def pending_jobs(self) -> List[DecryptionJob]:
        return [job for job in self.jobs.values() if not job.delivered]

    def respond(self, request_id: int) -> OracleResponse:
        """Decrypt, encode and sign without delivering"""
        job = self.jobs.get(request_id)
        if job is None:
            raise KeyError(f"No decryption job {request_id}")

        decrypted = [self.fhe_engine.decrypt(self.store.get(h)) for h in job.handles]
        payload = self.result_encoder(decrypted)
        return OracleResponse(
            request_id=request_id,
            payload=payload,
            proof=self.signer.sign_response(request_id, payload)
        )

    def deliver(self, request_id: int):
        """
        Respond and invoke the callback. The job counts as delivered even
        if the protocol rejects the callback; the rejection propagates.
        """
        if self._target is None:
            raise RuntimeError("No callback target attached")

        response = self.respond(request_id)
        job = self.jobs[request_id]
        job.delivered = True
        callback = getattr(self._target, job.callback_selector)
        return callback(response.request_id, response.payload, response.proof)

    def deliver_all(self) -> List[DeliveryResult]:
        """
        Deliver every pending job. A job rejected by the protocol or
        failing local decryption is reported and never stops the rest.
        """
        results = []
        for job in self.pending_jobs():
            try:
                event = self.deliver(job.request_id)
                results.append(DeliveryResult(request_id=job.request_id, event=event))
            except ProtocolError as e:
                results.append(DeliveryResult(
                    request_id=job.request_id,
                    error=e.kind,
                    details={'detail': e.message}
                ))
            except (KeyError, ValueError) as e:
                results.append(DeliveryResult(
                    request_id=job.request_id,
                    error="decryption_failed",
                    details={'detail': str(e)}
                ))
        return results
