"""
Protocol Data Model
===================
Records owned by the coordinating service: batches, pending oracle
requests, per-actor state, configuration, theorem submissions and
completion events.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ProofStatus(str, Enum):
    """Lifecycle of a submitted theorem"""
    PENDING = "pending"        # Submitted, no computation dispatched yet
    PROVING = "proving"        # Decryption request outstanding
    PROVED = "proved"          # Oracle reported a proof
    DISPROVED = "disproved"    # Oracle reported no proof


@dataclass
class Batch:
    """Administrative window in which new requests may be admitted"""
    batch_id: int
    is_active: bool = True
    opened_at: Optional[float] = None
    closed_at: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PendingRequest:
    """
    One outstanding decryption request.

    ``commitment`` is fixed at creation; only ``processed`` (and its
    timestamp) ever changes, once, from False to True.
    """
    request_id: int
    batch_id: int
    theorem_id: str
    commitment: bytes
    processed: bool = False
    created_at: Optional[float] = None
    processed_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'request_id': self.request_id,
            'batch_id': self.batch_id,
            'theorem_id': self.theorem_id,
            'commitment': self.commitment.hex(),
            'processed': self.processed,
            'created_at': self.created_at,
            'processed_at': self.processed_at
        }


@dataclass
class ActorState:
    """Per-actor role flag and cooldown clocks"""
    actor: str
    is_provider: bool = False
    last_submission_time: Optional[float] = None
    last_decryption_request_time: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProtocolConfig:
    """Process-wide settings, mutated only by the owner"""
    owner: str
    paused: bool = False
    cooldown_seconds: float = 60.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'ProtocolConfig':
        return cls(
            owner=d['owner'],
            paused=bool(d.get('paused', False)),
            cooldown_seconds=float(d.get('cooldown_seconds', 60.0))
        )


@dataclass
class TheoremRecord:
    """
    An encrypted theorem submitted by a provider.

    ``result_handles`` mirrors the handles of its current decryption
    request for display; callbacks re-derive from the protocol's
    per-request table.
    """
    theorem_id: str
    owner: str
    name: str
    category: str
    batch_id: int
    encrypted_input: Any
    submitted_at: float
    status: ProofStatus = ProofStatus.PENDING
    result_handles: Tuple[bytes, ...] = ()
    request_id: Optional[int] = None
    proof_steps: Optional[int] = None
    updated_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'theorem_id': self.theorem_id,
            'owner': self.owner,
            'name': self.name,
            'category': self.category,
            'batch_id': self.batch_id,
            'status': self.status.value,
            'result_handles': [h.hex() for h in self.result_handles],
            'request_id': self.request_id,
            'proof_steps': self.proof_steps,
            'submitted_at': self.submitted_at,
            'updated_at': self.updated_at
        }


@dataclass
class CompletionEvent:
    """Emitted exactly once per successfully processed request"""
    request_id: int
    batch_id: int
    theorem_id: str
    result_value: int
    result_flag: bool
    completed_at: float
    values: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StatusCounts:
    """Theorem counts per proof status"""
    proved: int = 0
    disproved: int = 0
    proving: int = 0
    pending: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_records(cls, records: List[TheoremRecord]) -> 'StatusCounts':
        counts = cls()
        for record in records:
            setattr(counts, record.status.value, getattr(counts, record.status.value) + 1)
        return counts
