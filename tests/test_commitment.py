"""
Commitment Hasher Tests
"""

import pytest

from oracle_protocol.commitment import COMMITMENT_SIZE, CommitmentHasher

A = b"\x01" * 32
B = b"\x02" * 32


class TestCommitmentHasher:

    @pytest.fixture
    def hasher(self):
        return CommitmentHasher(b"instance-1")

    def test_fixed_size(self, hasher):
        assert len(hasher.commit([A, B])) == COMMITMENT_SIZE
        assert len(hasher.commit([])) == COMMITMENT_SIZE

    def test_deterministic(self, hasher):
        assert hasher.commit([A, B]) == hasher.commit([A, B])
        assert hasher.commit([A, B]) == CommitmentHasher(b"instance-1").commit([A, B])

    def test_order_sensitive(self, hasher):
        assert hasher.commit([A, B]) != hasher.commit([B, A])

    def test_single_handle_change(self, hasher):
        altered = bytes([0x01] * 31 + [0x03])
        assert hasher.commit([A, B]) != hasher.commit([altered, B])

    def test_domain_separation(self, hasher):
        other = CommitmentHasher(b"instance-2")
        assert hasher.commit([A, B]) != other.commit([A, B])

    def test_length_prefix_prevents_concatenation_collision(self, hasher):
        assert hasher.commit([b"ab", b"c"]) != hasher.commit([b"a", b"bc"])
        assert hasher.commit([b"abc"]) != hasher.commit([b"ab", b"c"])

    def test_handle_count_matters(self, hasher):
        assert hasher.commit([]) != hasher.commit([b""])

    def test_non_bytes_handle_rejected(self, hasher):
        with pytest.raises(TypeError, match="handle 1"):
            hasher.commit([A, "not-bytes"])

    def test_empty_domain_tag_rejected(self):
        with pytest.raises(TypeError):
            CommitmentHasher(b"")

    def test_hex_matches_digest(self, hasher):
        assert hasher.commit_hex([A]) == hasher.commit([A]).hex()
