"""
Commitment Hasher
=================
Binds an ordered set of ciphertext handles to this protocol instance.

    commitment = SHA256( len(tag) || tag || count || len(h1) || h1 || ... )

Every field is length-prefixed (4-byte big-endian) so distinct handle
lists can never serialize to the same byte string, and the position of
each handle is part of the digest.
"""

import hashlib
import struct
from typing import Sequence

COMMITMENT_SIZE = 32
_LENGTH = struct.Struct(">I")


class CommitmentHasher:
    """
    Deterministic, order-sensitive commitment over ciphertext handles.

    The domain tag identifies the deployed protocol instance, so a
    commitment produced by one instance is useless against another.
    """

    def __init__(self, domain_tag: bytes):
        """
        Args:
            domain_tag: Identity of this protocol instance (non-empty bytes)
        """
        if not isinstance(domain_tag, (bytes, bytearray)) or not domain_tag:
            raise TypeError("domain_tag must be non-empty bytes")
        self.domain_tag = bytes(domain_tag)

    def commit(self, handles: Sequence[bytes]) -> bytes:
        """
        Commit to an ordered sequence of ciphertext handles.

        Args:
            handles: Opaque binary handles, in request order

        Returns:
            32-byte SHA-256 digest

        Raises:
            TypeError: If a handle is not bytes
        """
        digest = hashlib.sha256()
        digest.update(_LENGTH.pack(len(self.domain_tag)))
        digest.update(self.domain_tag)
        digest.update(_LENGTH.pack(len(handles)))

        for index, handle in enumerate(handles):
            if not isinstance(handle, (bytes, bytearray)):
                raise TypeError(
                    f"Ciphertext handle {index} must be bytes, got {type(handle).__name__}"
                )
            digest.update(_LENGTH.pack(len(handle)))
            digest.update(handle)

        return digest.digest()

    def commit_hex(self, handles: Sequence[bytes]) -> str:
        return self.commit(handles).hex()
