"""
Admission Gate
==============
Pure predicates applied before any state-mutating action.

Checks run in a fixed order: role, pause flag, cooldown. The gate never
mutates anything; the caller updates the actor's clock only after the
admitted action has succeeded.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import CooldownActive, NotAuthorized, ProtocolError, ServiceSuspended
from .models import ActorState, ProtocolConfig


class Role(str, Enum):
    """Roles an action may require"""
    OWNER = "owner"
    PROVIDER = "provider"


class CooldownClock(str, Enum):
    """Independently tracked per-actor cooldown clocks"""
    SUBMISSION = "submission"
    DECRYPTION_REQUEST = "decryption_request"


class DenialReason(str, Enum):
    NOT_AUTHORIZED = "not_authorized"
    SERVICE_SUSPENDED = "service_suspended"
    COOLDOWN_ACTIVE = "cooldown_active"


@dataclass(frozen=True)
class AdmissionDecision:
    """Allowed, or Denied with a reason"""
    allowed: bool
    reason: Optional[DenialReason] = None
    message: str = ""
    retry_at: Optional[float] = None

    def raise_for_denial(self):
        """Raise the taxonomy error matching this denial, if any"""
        if self.allowed:
            return
        error: ProtocolError
        if self.reason == DenialReason.NOT_AUTHORIZED:
            error = NotAuthorized(self.message)
        elif self.reason == DenialReason.SERVICE_SUSPENDED:
            error = ServiceSuspended(self.message)
        else:
            error = CooldownActive(self.message, retry_at=self.retry_at)
        raise error


ALLOWED = AdmissionDecision(allowed=True)


def has_role(actor_state: ActorState, config: ProtocolConfig, role: Role) -> bool:
    if role == Role.OWNER:
        return actor_state.actor == config.owner
    return actor_state.is_provider


def last_action_time(actor_state: ActorState, clock: CooldownClock) -> Optional[float]:
    if clock == CooldownClock.SUBMISSION:
        return actor_state.last_submission_time
    return actor_state.last_decryption_request_time


def admit(actor_state: ActorState,
          config: ProtocolConfig,
          role_required: Role,
          cooldown_clock: Optional[CooldownClock],
          now: float) -> AdmissionDecision:
    """
    Decide whether an actor may perform an action now.

    Args:
        actor_state: State of the acting identity
        config: Current protocol configuration
        role_required: Role the action needs
        cooldown_clock: Clock to check, or None for no cooldown
        now: Current time in seconds

    Returns:
        AdmissionDecision
    """
    if not has_role(actor_state, config, role_required):
        return AdmissionDecision(
            allowed=False,
            reason=DenialReason.NOT_AUTHORIZED,
            message=f"'{actor_state.actor}' lacks role '{role_required.value}'"
        )

    if config.paused:
        return AdmissionDecision(
            allowed=False,
            reason=DenialReason.SERVICE_SUSPENDED,
            message="Service is paused"
        )

    if cooldown_clock is not None:
        last = last_action_time(actor_state, cooldown_clock)
        if last is not None:
            ready_at = last + config.cooldown_seconds
            if now < ready_at:
                return AdmissionDecision(
                    allowed=False,
                    reason=DenialReason.COOLDOWN_ACTIVE,
                    message=f"{cooldown_clock.value} cooldown active for {ready_at - now:.1f}s",
                    retry_at=ready_at
                )

    return ALLOWED
