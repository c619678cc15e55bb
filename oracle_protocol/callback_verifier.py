"""
Oracle Callback Verifier
========================
Accepts or rejects inbound oracle callbacks.

A request moves Pending -> Processed at most once. A rejected callback
is not a transition: the record stays Pending and a corrected callback
may still succeed later.

Check order:
1. Request exists                      (UnknownRequest)
2. Request not yet processed           (ReplayAttempt)
3. Re-derived commitment matches       (StateMismatch)
4. Oracle proof verifies               (InvalidProof)
5. Payload decodes with fixed layout   (MalformedPayload)

State changes only after every check has passed.
"""

import time
from typing import Callable, Sequence

from .commitment import CommitmentHasher
from .errors import (
    InvalidProof,
    MalformedPayload,
    ProtocolError,
    ReplayAttempt,
    StateMismatch,
    UnknownRequest,
)
from .models import CompletionEvent, PendingRequest
from .oracle_signing import ProofVerifier
from .payload_codec import CleartextCodec, proof_result_codec
from .request_registry import RequestRegistry
from .security_logger import OperationType, SecurityLogger

# Re-derives the expected handle set for a request from protocol-side state
HandleSource = Callable[[PendingRequest], Sequence[bytes]]


class OracleCallbackVerifier:
    """Core state machine for oracle callbacks"""

    def __init__(self,
                 registry: RequestRegistry,
                 hasher: CommitmentHasher,
                 proof_verifier: ProofVerifier,
                 handle_source: HandleSource,
                 codec: CleartextCodec = None,
                 logger: SecurityLogger = None,
                 clock: Callable[[], float] = time.time):
        self.registry = registry
        self.hasher = hasher
        self.proof_verifier = proof_verifier
        self.handle_source = handle_source
        self.codec = codec or proof_result_codec()
        self.logger = logger or SecurityLogger()
        self._clock = clock

    def handle_callback(self,
                        request_id: int,
                        cleartext_payload: bytes,
                        authenticity_proof: bytes) -> CompletionEvent:
        """
        Verify a callback and release its decoded result.

        Args:
            request_id: Id the oracle assigned at dispatch
            cleartext_payload: Fixed-layout decrypted values
            authenticity_proof: Oracle signature over (request_id, payload)

        Returns:
            CompletionEvent for the processed request
        """
        request = None
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            request = self.registry.find(request_id)
        if request is None:
            self._reject(OperationType.CALLBACK_UNKNOWN, request_id, "no such request")
            raise UnknownRequest(f"Unknown request {request_id}")

        if request.processed:
            self._reject(OperationType.CALLBACK_REPLAY, request_id, "already processed")
            raise ReplayAttempt(f"Request {request_id} already processed")

        try:
            expected_handles = tuple(self.handle_source(request))
        except ProtocolError as e:
            self._reject(OperationType.CALLBACK_STATE_MISMATCH, request_id, e.message)
            raise StateMismatch(f"Cannot re-derive handles for request {request_id}") from e

        if self.hasher.commit(expected_handles) != request.commitment:
            self._reject(OperationType.CALLBACK_STATE_MISMATCH, request_id,
                         "commitment does not match re-derived handles")
            raise StateMismatch(f"Commitment mismatch for request {request_id}")

        valid, message = self.proof_verifier.verify(request_id, cleartext_payload, authenticity_proof)
        if not valid:
            self._reject(OperationType.CALLBACK_INVALID_PROOF, request_id, message)
            raise InvalidProof(f"Request {request_id}: {message}")

        try:
            values = self.codec.decode(cleartext_payload)
        except MalformedPayload as e:
            self._reject(OperationType.CALLBACK_MALFORMED, request_id, e.message)
            raise

        self.registry.mark_processed(request_id)

        event = CompletionEvent(
            request_id=request.request_id,
            batch_id=request.batch_id,
            theorem_id=request.theorem_id,
            result_value=values.get('result_value', 0),
            result_flag=bool(values.get('result_flag', False)),
            completed_at=self._clock(),
            values=values
        )
        self.logger.log(
            entity='oracle',
            operation=OperationType.CALLBACK_ACCEPTED,
            details={'request_id': request_id, 'batch_id': request.batch_id}
        )
        return event

    def _reject(self, operation: OperationType, request_id: int, reason: str):
        self.logger.log_callback_rejected(operation, request_id, reason)
