"""
Oracle Protocol - Request/Callback Integrity for an FHE Decryption Oracle
==========================================================================
Commitment-bound decryption requests and verified oracle callbacks.
"""

from .commitment import CommitmentHasher
from .admission import AdmissionDecision, CooldownClock, Role, admit
from .batches import BatchLifecycle
from .request_registry import RequestRegistry, DecryptionDispatcher, CALLBACK_SELECTOR
from .callback_verifier import OracleCallbackVerifier
from .oracle_signing import OracleSigner, ProofVerifier, OracleProof
from .payload_codec import CleartextCodec, FieldType, encode_proof_result, proof_result_codec
from .security_logger import SecurityLogger, OperationType
from .protocol import TheoremOracleProtocol, ComputationEngine
from .models import (
    Batch,
    PendingRequest,
    ActorState,
    ProtocolConfig,
    TheoremRecord,
    ProofStatus,
    CompletionEvent,
    StatusCounts
)
from .errors import (
    ProtocolError,
    NotAuthorized,
    ServiceSuspended,
    CooldownActive,
    BatchNotActive,
    UnknownBatch,
    UnknownTheorem,
    TheoremAlreadySettled,
    ProofInProgress,
    UnknownRequest,
    ReplayAttempt,
    StateMismatch,
    InvalidProof,
    MalformedPayload,
    OracleDispatchError,
    ComputationFailed
)

__all__ = [
    # Core
    'TheoremOracleProtocol', 'ComputationEngine',
    'CommitmentHasher', 'RequestRegistry', 'DecryptionDispatcher', 'CALLBACK_SELECTOR',
    'OracleCallbackVerifier', 'BatchLifecycle',

    # Admission
    'AdmissionDecision', 'CooldownClock', 'Role', 'admit',

    # Oracle proofs and payloads
    'OracleSigner', 'ProofVerifier', 'OracleProof',
    'CleartextCodec', 'FieldType', 'encode_proof_result', 'proof_result_codec',

    # Audit
    'SecurityLogger', 'OperationType',

    # Models
    'Batch', 'PendingRequest', 'ActorState', 'ProtocolConfig', 'TheoremRecord',
    'ProofStatus', 'CompletionEvent', 'StatusCounts',

    # Errors
    'ProtocolError', 'NotAuthorized', 'ServiceSuspended', 'CooldownActive',
    'BatchNotActive', 'UnknownBatch', 'UnknownTheorem', 'TheoremAlreadySettled', 'ProofInProgress',
    'UnknownRequest', 'ReplayAttempt', 'StateMismatch', 'InvalidProof',
    'MalformedPayload', 'OracleDispatchError', 'ComputationFailed'
]

__version__ = '1.0.0'
