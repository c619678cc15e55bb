"""
Admission Gate Tests
"""

import pytest

from oracle_protocol.admission import CooldownClock, DenialReason, Role, admit
from oracle_protocol.errors import CooldownActive, NotAuthorized, ServiceSuspended
from oracle_protocol.models import ActorState, ProtocolConfig

T = 1_000.0
C = 60.0


@pytest.fixture
def config():
    return ProtocolConfig(owner="owner", cooldown_seconds=C)


@pytest.fixture
def provider():
    return ActorState(actor="alice", is_provider=True, last_submission_time=T)


class TestAdmissionOrder:

    def test_role_checked_before_pause(self, config):
        config.paused = True
        outsider = ActorState(actor="mallory")

        decision = admit(outsider, config, Role.PROVIDER, None, T)
        assert decision.reason == DenialReason.NOT_AUTHORIZED

    def test_pause_checked_before_cooldown(self, config, provider):
        config.paused = True

        decision = admit(provider, config, Role.PROVIDER, CooldownClock.SUBMISSION, T + 1)
        assert decision.reason == DenialReason.SERVICE_SUSPENDED

    def test_owner_role(self, config):
        assert admit(ActorState(actor="owner"), config, Role.OWNER, None, T).allowed
        assert not admit(ActorState(actor="alice", is_provider=True), config, Role.OWNER, None, T).allowed


class TestCooldown:

    def test_denied_before_window_ends(self, config, provider):
        decision = admit(provider, config, Role.PROVIDER, CooldownClock.SUBMISSION, T + C - 0.001)

        assert not decision.allowed
        assert decision.reason == DenialReason.COOLDOWN_ACTIVE
        assert decision.retry_at == T + C

    def test_admitted_at_window_end(self, config, provider):
        assert admit(provider, config, Role.PROVIDER, CooldownClock.SUBMISSION, T + C).allowed
        assert admit(provider, config, Role.PROVIDER, CooldownClock.SUBMISSION, T + C + 5).allowed

    def test_clocks_are_independent(self, config, provider):
        decision = admit(provider, config, Role.PROVIDER, CooldownClock.DECRYPTION_REQUEST, T + 1)
        assert decision.allowed

    def test_no_clock_skips_cooldown(self, config, provider):
        assert admit(provider, config, Role.PROVIDER, None, T + 1).allowed

    def test_first_action_has_no_cooldown(self, config):
        fresh = ActorState(actor="bob", is_provider=True)
        assert admit(fresh, config, Role.PROVIDER, CooldownClock.SUBMISSION, 0.0).allowed

    def test_gate_does_not_mutate(self, config, provider):
        admit(provider, config, Role.PROVIDER, CooldownClock.SUBMISSION, T + C)
        assert provider.last_submission_time == T
        assert provider.last_decryption_request_time is None


class TestRaiseForDenial:

    def test_allowed_does_not_raise(self, config, provider):
        admit(provider, config, Role.PROVIDER, None, T).raise_for_denial()

    @pytest.mark.parametrize("paused,actor,now,expected", [
        (False, ActorState(actor="mallory"), T, NotAuthorized),
        (True, ActorState(actor="alice", is_provider=True), T, ServiceSuspended),
        (False, ActorState(actor="alice", is_provider=True, last_submission_time=T), T + 1, CooldownActive),
    ])
    def test_maps_to_taxonomy(self, config, paused, actor, now, expected):
        config.paused = paused
        decision = admit(actor, config, Role.PROVIDER, CooldownClock.SUBMISSION, now)

        with pytest.raises(expected) as exc_info:
            decision.raise_for_denial()
        assert exc_info.value.retryable
