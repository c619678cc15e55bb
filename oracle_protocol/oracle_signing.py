"""
Oracle Authenticity Proofs
==========================
ECDSA signatures binding an oracle response to its request.

The oracle signs::

    domain_tag | request_id | SHA256(cleartext_payload)

and ships the signature together with its public key id as the
authenticity proof. The protocol only accepts proofs from keys that the
owner registered.
"""

import base64
import hashlib
import json
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.exceptions import InvalidSignature


@dataclass
class OracleProof:
    """Container for an oracle signature"""
    key_id: str
    signature: str
    algorithm: str = "ECDSA-SHA256"

    def to_bytes(self) -> bytes:
        return json.dumps({
            "key_id": self.key_id,
            "signature": self.signature,
            "algorithm": self.algorithm
        }, sort_keys=True, separators=(',', ':')).encode('utf-8')

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'OracleProof':
        """
        Raises:
            ValueError: Not a JSON object with string key_id/signature/algorithm
        """
        d = json.loads(raw.decode('utf-8'))
        if not isinstance(d, dict):
            raise ValueError("Proof must be a JSON object")

        fields = {
            'key_id': d.get("key_id"),
            'signature': d.get("signature"),
            'algorithm': d.get("algorithm", "ECDSA-SHA256")
        }
        for name, value in fields.items():
            if not isinstance(value, str):
                raise ValueError(f"Proof field '{name}' must be a string")
        return cls(**fields)


def _key_id(public_key: ec.EllipticCurvePublicKey) -> str:
    """Short ID from public key (first 16 hex chars of hash)"""
    pub_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return hashlib.sha256(pub_bytes).hexdigest()[:16]


def response_message(domain_tag: bytes, request_id: int, payload: bytes) -> bytes:
    """Canonical byte string an oracle signs for one response"""
    return b"|".join([
        domain_tag,
        str(request_id).encode('ascii'),
        hashlib.sha256(payload).digest()
    ])


class OracleSigner:
    """
    Signing side, held by the decryption oracle.

    - Private key: stays with the oracle
    - Public key: registered with the protocol owner
    """

    def __init__(self, domain_tag: bytes, private_key: ec.EllipticCurvePrivateKey = None):
        """
        Args:
            domain_tag: Identity of the protocol instance being served
            private_key: Optional existing key, generates new if None
        """
        self.domain_tag = domain_tag
        self.private_key = private_key or ec.generate_private_key(ec.SECP256R1())
        self.public_key = self.private_key.public_key()
        self.key_id = _key_id(self.public_key)

    def get_public_key_pem(self) -> str:
        """Export public key as PEM string for registration"""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('utf-8')

    def sign_response(self, request_id: int, payload: bytes) -> bytes:
        """
        Produce the authenticity proof for one response.

        Returns:
            Serialized OracleProof
        """
        signature = self.private_key.sign(
            response_message(self.domain_tag, request_id, payload),
            ec.ECDSA(hashes.SHA256())
        )
        return OracleProof(
            key_id=self.key_id,
            signature=base64.b64encode(signature).decode('utf-8')
        ).to_bytes()


class ProofVerifier:
    """
    Protocol-side verification of oracle proofs.
    Maintains the registry of trusted oracle public keys.
    """

    def __init__(self, domain_tag: bytes):
        self.domain_tag = domain_tag
        self.public_keys: Dict[str, ec.EllipticCurvePublicKey] = {}

    def register_oracle_key(self, public_key_pem: str) -> str:
        """
        Trust an oracle public key.

        Returns:
            Public key ID
        """
        public_key = serialization.load_pem_public_key(public_key_pem.encode('utf-8'))
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise ValueError("Oracle key must be an EC public key")

        key_id = _key_id(public_key)
        self.public_keys[key_id] = public_key
        return key_id

    def revoke_oracle_key(self, key_id: str) -> bool:
        return self.public_keys.pop(key_id, None) is not None

    def verify(self, request_id: int, payload: bytes, proof: bytes) -> Tuple[bool, str]:
        """
        Verify an oracle proof over (request_id, payload).

        Returns:
            (is_valid, message)
        """
        try:
            parsed = OracleProof.from_bytes(proof)
        except (ValueError, TypeError, AttributeError, RecursionError) as e:
            return False, f"Unparseable proof: {e}"

        public_key: Optional[ec.EllipticCurvePublicKey] = self.public_keys.get(parsed.key_id)
        if public_key is None:
            return False, f"Unknown oracle key: {parsed.key_id}"

        try:
            signature = base64.b64decode(parsed.signature, validate=True)
        except (ValueError, TypeError) as e:
            return False, f"Invalid signature encoding: {e}"

        try:
            public_key.verify(
                signature,
                response_message(self.domain_tag, request_id, payload),
                ec.ECDSA(hashes.SHA256())
            )
            return True, "Proof valid"
        except InvalidSignature:
            return False, "Invalid signature"
