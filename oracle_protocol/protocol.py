"""
Theorem Oracle Protocol
=======================
Coordinating service object for encrypted theorem proving.

Flow:
1. Owner opens a batch and admits providers
2. Provider submits an encrypted theorem
3. Provider requests a proof: the computation engine runs over the
   ciphertext, its output handles are committed and dispatched to the
   decryption oracle
4. The oracle calls back later; the callback is verified and the
   decoded result is released as a CompletionEvent

All shared tables live in this object and every action runs under one
lock, so no caller ever observes a half-applied action.
"""

import secrets
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .admission import CooldownClock, Role, admit, has_role
from .batches import BatchLifecycle
from .callback_verifier import OracleCallbackVerifier
from .commitment import CommitmentHasher
from .errors import (
    ComputationFailed,
    NotAuthorized,
    ProofInProgress,
    StateMismatch,
    TheoremAlreadySettled,
    UnknownTheorem,
)
from .models import (
    ActorState,
    CompletionEvent,
    PendingRequest,
    ProofStatus,
    ProtocolConfig,
    StatusCounts,
    TheoremRecord,
)
from .oracle_signing import ProofVerifier
from .request_registry import DecryptionDispatcher, RequestRegistry
from .security_logger import OperationType, SecurityLogger

DEFAULT_COMPUTATION = "proof_search"
DEFAULT_CATEGORY = "Number Theory"


class ComputationEngine(Protocol):
    """Outbound boundary to the encrypted-computation engine"""

    def run(self, encrypted_input: Any, tag: str) -> Sequence[bytes]:
        ...


class TheoremOracleProtocol:
    """
    Owns batches, pending requests, actor state, theorems and events.

    Construct once at startup; nothing here is a module-level singleton.
    """

    def __init__(self,
                 config: ProtocolConfig,
                 engine: ComputationEngine,
                 dispatcher: DecryptionDispatcher,
                 domain_tag: bytes,
                 logger: SecurityLogger = None,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            config: Owner, pause flag and cooldown
            engine: Runs computations over encrypted theorems
            dispatcher: Decryption oracle dispatch
            domain_tag: Identity of this protocol instance
            logger: Audit log (a fresh in-memory one if None)
            clock: Time source in seconds
        """
        self.config = config
        self.engine = engine
        self.domain_tag = domain_tag
        self.logger = logger or SecurityLogger()
        self._clock = clock
        self._lock = threading.RLock()

        self.hasher = CommitmentHasher(domain_tag)
        self.proof_verifier = ProofVerifier(domain_tag)
        self.batches = BatchLifecycle(clock)
        self.registry = RequestRegistry(self.hasher, dispatcher, self.batches, clock)
        self.verifier = OracleCallbackVerifier(
            self.registry,
            self.hasher,
            self.proof_verifier,
            self._expected_handles,
            logger=self.logger,
            clock=clock
        )

        self.actors: Dict[str, ActorState] = {}
        self.theorems: Dict[str, TheoremRecord] = {}
        # request id -> output handles exactly as dispatched
        self.request_handles: Dict[int, Tuple[bytes, ...]] = {}
        self.events: List[CompletionEvent] = []
        self._listeners: List[Callable[[CompletionEvent], None]] = []

    # ==================== ADMINISTRATION ====================

    def require_owner(self, caller: str):
        if not has_role(self._actor_view(caller), self.config, Role.OWNER):
            self.logger.log(caller, OperationType.ADMISSION_DENIED, {'reason': 'not_owner'})
            raise NotAuthorized(f"'{caller}' is not the owner")

    def _admin(self, caller: str, action: str, **details):
        self.logger.log(caller, OperationType.ADMIN, {'action': action, **details})

    def add_provider(self, caller: str, actor: str):
        with self._lock:
            self.require_owner(caller)
            self._actor_state(actor).is_provider = True
            self._admin(caller, 'add_provider', actor=actor)

    def remove_provider(self, caller: str, actor: str):
        with self._lock:
            self.require_owner(caller)
            if actor in self.actors:
                self.actors[actor].is_provider = False
            self._admin(caller, 'remove_provider', actor=actor)

    def set_paused(self, caller: str, paused: bool):
        with self._lock:
            self.require_owner(caller)
            self.config.paused = bool(paused)
            self._admin(caller, 'set_paused', paused=self.config.paused)

    def set_cooldown(self, caller: str, cooldown_seconds: float):
        with self._lock:
            self.require_owner(caller)
            if cooldown_seconds < 0:
                raise ValueError("Cooldown must be non-negative")
            self.config.cooldown_seconds = float(cooldown_seconds)
            self._admin(caller, 'set_cooldown', cooldown_seconds=self.config.cooldown_seconds)

    def open_batch(self, caller: str) -> int:
        with self._lock:
            self.require_owner(caller)
            batch_id = self.batches.open_batch()
            self._admin(caller, 'open_batch', batch_id=batch_id)
            return batch_id

    def close_batch(self, caller: str, batch_id: int):
        with self._lock:
            self.require_owner(caller)
            self.batches.close_batch(batch_id)
            self._admin(caller, 'close_batch', batch_id=batch_id)

    def register_oracle_key(self, caller: str, public_key_pem: str) -> str:
        """Trust an oracle signing key; returns its key id"""
        with self._lock:
            self.require_owner(caller)
            key_id = self.proof_verifier.register_oracle_key(public_key_pem)
            self._admin(caller, 'register_oracle_key', key_id=key_id)
            return key_id

    def is_available(self) -> bool:
        return not self.config.paused

    # ==================== ADMITTED ACTIONS ====================

    def _admit(self, actor: str, role: Role, clock: Optional[CooldownClock]):
        decision = admit(self._actor_view(actor), self.config, role, clock, self._clock())
        if not decision.allowed:
            self.logger.log(actor, OperationType.ADMISSION_DENIED, {
                'reason': decision.reason.value,
                'clock': clock.value if clock else None
            })
        decision.raise_for_denial()

    def submit_theorem(self,
                       actor: str,
                       encrypted_input: Any,
                       name: str,
                       category: str = DEFAULT_CATEGORY) -> TheoremRecord:
        """
        Store an encrypted theorem in the active batch.

        Raises:
            NotAuthorized, ServiceSuspended, CooldownActive, BatchNotActive
        """
        with self._lock:
            self._admit(actor, Role.PROVIDER, CooldownClock.SUBMISSION)
            batch = self.batches.require_active(self.batches.active_batch_id)

            now = self._clock()
            theorem_id = f"thm-{int(now * 1000)}-{secrets.token_hex(4)}"
            while theorem_id in self.theorems:
                theorem_id = f"thm-{int(now * 1000)}-{secrets.token_hex(4)}"

            record = TheoremRecord(
                theorem_id=theorem_id,
                owner=actor,
                name=name,
                category=category,
                batch_id=batch.batch_id,
                encrypted_input=encrypted_input,
                submitted_at=now,
                updated_at=now
            )
            self.theorems[theorem_id] = record
            self._actor_state(actor).last_submission_time = now

            self.logger.log(actor, OperationType.SUBMIT, {
                'theorem_id': theorem_id,
                'batch_id': batch.batch_id
            })
            return record

    def request_proof(self,
                      actor: str,
                      theorem_id: str,
                      computation: str = DEFAULT_COMPUTATION) -> int:
        """
        Run the computation over a theorem and dispatch its outputs for
        decryption. A theorem has at most one outstanding request; its
        output handles are persisted under the request id so a late
        first callback can always be re-verified.

        Returns:
            Request id assigned by the oracle

        Raises:
            ProofInProgress: Theorem already awaits a callback
            ComputationFailed: Engine rejected the tag or the input
        """
        with self._lock:
            self._admit(actor, Role.PROVIDER, CooldownClock.DECRYPTION_REQUEST)
            theorem = self.get_theorem(theorem_id)
            if theorem.status in (ProofStatus.PROVED, ProofStatus.DISPROVED):
                raise TheoremAlreadySettled(f"Theorem {theorem_id} is {theorem.status.value}")
            if theorem.status == ProofStatus.PROVING:
                raise ProofInProgress(
                    f"Theorem {theorem_id} awaits request {theorem.request_id}",
                    request_id=theorem.request_id
                )
            self.batches.require_active(theorem.batch_id)

            try:
                handles = tuple(self.engine.run(theorem.encrypted_input, computation))
            except (ValueError, KeyError, TypeError) as e:
                raise ComputationFailed(f"Computation '{computation}' failed: {e}") from e
            request_id = self.registry.create_request(theorem.batch_id, handles, theorem_id)
            self.request_handles[request_id] = handles

            now = self._clock()
            theorem.result_handles = handles
            theorem.request_id = request_id
            theorem.status = ProofStatus.PROVING
            theorem.updated_at = now
            self._actor_state(actor).last_decryption_request_time = now

            self.logger.log(actor, OperationType.DISPATCH, {
                'theorem_id': theorem_id,
                'request_id': request_id,
                'computation': computation,
                'handle_count': len(handles)
            })
            return request_id

    # ==================== ORACLE CALLBACK ====================

    def _expected_handles(self, request: PendingRequest) -> Sequence[bytes]:
        handles = self.request_handles.get(request.request_id)
        if handles is None:
            raise StateMismatch(f"No dispatched handles recorded for request {request.request_id}")
        return handles

    def handle_callback(self,
                        request_id: int,
                        cleartext_payload: bytes,
                        authenticity_proof: bytes) -> CompletionEvent:
        """
        Inbound oracle callback. Publicly reachable, so every argument
        is untrusted.
        """
        with self._lock:
            event = self.verifier.handle_callback(request_id, cleartext_payload, authenticity_proof)

            theorem = self.theorems[event.theorem_id]
            theorem.status = ProofStatus.PROVED if event.result_flag else ProofStatus.DISPROVED
            theorem.proof_steps = event.result_value
            theorem.updated_at = event.completed_at
            self.events.append(event)

            for listener in list(self._listeners):
                listener(event)
            return event

    def add_completion_listener(self, listener: Callable[[CompletionEvent], None]):
        self._listeners.append(listener)

    # ==================== QUERIES ====================

    def _actor_view(self, actor: str) -> ActorState:
        return self.actors.get(actor) or ActorState(actor=actor)

    def _actor_state(self, actor: str) -> ActorState:
        if actor not in self.actors:
            self.actors[actor] = ActorState(actor=actor)
        return self.actors[actor]

    def get_actor_state(self, actor: str) -> ActorState:
        return self._actor_view(actor)

    def get_theorem(self, theorem_id: str) -> TheoremRecord:
        theorem = self.theorems.get(theorem_id)
        if theorem is None:
            raise UnknownTheorem(f"Unknown theorem {theorem_id}")
        return theorem

    def list_theorems(self) -> List[TheoremRecord]:
        """Newest first"""
        return sorted(self.theorems.values(), key=lambda t: t.submitted_at, reverse=True)

    def get_request(self, request_id: int) -> PendingRequest:
        return self.registry.lookup(request_id)

    def status_counts(self) -> StatusCounts:
        return StatusCounts.from_records(list(self.theorems.values()))

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            pending = [r for r in self.registry.requests.values() if not r.processed]
            return {
                'available': self.is_available(),
                'config': self.config.to_dict(),
                'active_batch_id': self.batches.active_batch_id,
                'batches': len(self.batches.batches),
                'theorems': self.status_counts().to_dict(),
                'requests_pending': len(pending),
                'requests_processed': len(self.registry.requests) - len(pending),
                'oracle_keys': sorted(self.proof_verifier.public_keys),
                'attack_signals': len(self.logger.get_violations())
            }
