"""
Protocol Errors
===============
Failure taxonomy for admitted actions and oracle callbacks.

Every failure carries a stable ``kind`` string so calling layers
(HTTP server, operator tooling) can decide between retry and abort
without parsing messages.
"""

from typing import Optional


class ProtocolError(Exception):
    """Base class for all protocol failures"""
    kind = "protocol_error"
    retryable = False

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "detail": self.message,
            "retryable": self.retryable,
            **self.details
        }


# ==================== ADMISSION ====================

class NotAuthorized(ProtocolError):
    """Caller does not hold the role the action requires"""
    kind = "not_authorized"
    retryable = True


class ServiceSuspended(ProtocolError):
    """Protocol is paused by the owner"""
    kind = "service_suspended"
    retryable = True


class CooldownActive(ProtocolError):
    """Actor acted too recently on the same cooldown clock"""
    kind = "cooldown_active"
    retryable = True

    def __init__(self, message: str = "", retry_at: Optional[float] = None):
        super().__init__(message, retry_at=retry_at)
        self.retry_at = retry_at


# ==================== BATCHES / LOOKUPS ====================

class BatchNotActive(ProtocolError):
    """Target batch is closed"""
    kind = "batch_not_active"
    retryable = True


class UnknownBatch(ProtocolError):
    kind = "unknown_batch"


class UnknownTheorem(ProtocolError):
    kind = "unknown_theorem"


class TheoremAlreadySettled(ProtocolError):
    """Theorem already has a verified proof result"""
    kind = "theorem_settled"


class ProofInProgress(ProtocolError):
    """Theorem already has an outstanding decryption request"""
    kind = "proof_in_progress"
    retryable = True


class UnknownRequest(ProtocolError):
    """No pending request exists under the given id"""
    kind = "unknown_request"


# ==================== CALLBACK INTEGRITY ====================

class ReplayAttempt(ProtocolError):
    """A callback for an already processed request"""
    kind = "replay_attempt"


class StateMismatch(ProtocolError):
    """Re-derived ciphertext commitment differs from the stored one"""
    kind = "state_mismatch"


class InvalidProof(ProtocolError):
    """Oracle authenticity proof failed verification"""
    kind = "invalid_proof"


class MalformedPayload(ProtocolError):
    """Cleartext payload does not match the agreed field layout"""
    kind = "malformed_payload"


# ==================== ORACLE DISPATCH ====================

class OracleDispatchError(ProtocolError):
    """Decryption oracle rejected or mishandled a dispatch"""
    kind = "oracle_dispatch_failed"


# ==================== COMPUTATION ====================

class ComputationFailed(ProtocolError):
    """Computation engine rejected the tag or the encrypted input"""
    kind = "computation_failed"
