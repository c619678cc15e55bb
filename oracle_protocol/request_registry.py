"""
Request Registry
================
One pending-request record per outstanding oracle call.

Records are created when a decryption request is dispatched, flipped to
processed once by a verified callback, and never deleted: the table is
both the replay guard and the audit trail.
"""

import time
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from .batches import BatchLifecycle
from .commitment import CommitmentHasher
from .errors import OracleDispatchError, ReplayAttempt, UnknownRequest
from .models import PendingRequest

CALLBACK_SELECTOR = "handle_callback"


class DecryptionDispatcher(Protocol):
    """Outbound boundary to the decryption oracle"""

    def request_decryption(self, handles: Sequence[bytes], callback_selector: str) -> int:
        ...


class RequestRegistry:
    """
    Sole owner and mutator of PendingRequest records.

    Features:
    - Batch gating before dispatch
    - Request id uniqueness enforcement
    - Monotonic processed flag
    """

    def __init__(self,
                 hasher: CommitmentHasher,
                 dispatcher: DecryptionDispatcher,
                 batches: BatchLifecycle,
                 clock: Callable[[], float] = time.time):
        self.hasher = hasher
        self.dispatcher = dispatcher
        self.batches = batches
        self.requests: Dict[int, PendingRequest] = {}
        self._clock = clock

    def create_request(self,
                       batch_id: int,
                       handles: Sequence[bytes],
                       theorem_id: str) -> int:
        """
        Dispatch handles to the oracle and record the pending request.

        Args:
            batch_id: Batch the request belongs to (must be active)
            handles: Ordered output ciphertext handles
            theorem_id: Submission the handles were computed for

        Returns:
            Request id assigned by the oracle

        Raises:
            BatchNotActive: Batch closed; nothing dispatched or stored
            OracleDispatchError: Dispatch failed or reused an id
        """
        self.batches.require_active(batch_id)
        handles = tuple(handles)
        commitment = self.hasher.commit(handles)

        try:
            request_id = self.dispatcher.request_decryption(handles, CALLBACK_SELECTOR)
        except OracleDispatchError:
            raise
        except Exception as e:
            raise OracleDispatchError(f"Oracle dispatch failed: {e}") from e

        if not isinstance(request_id, int) or isinstance(request_id, bool):
            raise OracleDispatchError(f"Oracle returned invalid request id: {request_id!r}")
        if request_id in self.requests:
            raise OracleDispatchError(f"Oracle reused request id {request_id}")

        self.requests[request_id] = PendingRequest(
            request_id=request_id,
            batch_id=batch_id,
            theorem_id=theorem_id,
            commitment=commitment,
            created_at=self._clock()
        )
        return request_id

    def find(self, request_id: int) -> Optional[PendingRequest]:
        return self.requests.get(request_id)

    def lookup(self, request_id: int) -> PendingRequest:
        """
        Raises:
            UnknownRequest: No record under this id
        """
        request = self.requests.get(request_id)
        if request is None:
            raise UnknownRequest(f"Unknown request {request_id}")
        return request

    def mark_processed(self, request_id: int) -> PendingRequest:
        """Flip processed to True. Only the callback verifier calls this."""
        request = self.lookup(request_id)
        if request.processed:
            raise ReplayAttempt(f"Request {request_id} already processed")
        request.processed = True
        request.processed_at = self._clock()
        return request

    def list_requests(self, batch_id: Optional[int] = None) -> List[PendingRequest]:
        return [
            r for r in self.requests.values()
            if batch_id is None or r.batch_id == batch_id
        ]
