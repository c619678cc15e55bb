"""
Fully Homomorphic Encryption Core Engine
========================================
TenSEAL CKKS engine used to encrypt theorem parameters and to compute
over them without decryption.
"""

import base64
import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import List, Union

import numpy as np
import tenseal as ts


@dataclass
class EncryptedTheorem:
    """Wrapper for an encrypted parameter vector with metadata"""
    ciphertext: bytes
    timestamp: str
    label: str
    vector_size: int
    checksum: str

    @property
    def handle(self) -> bytes:
        """32-byte reference to this ciphertext"""
        return hashlib.sha256(self.ciphertext).digest()

    def to_dict(self) -> dict:
        return {
            'ciphertext': base64.b64encode(self.ciphertext).decode('utf-8'),
            'timestamp': self.timestamp,
            'label': self.label,
            'vector_size': self.vector_size,
            'checksum': self.checksum
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EncryptedTheorem':
        return cls(
            ciphertext=base64.b64decode(data['ciphertext']),
            timestamp=data['timestamp'],
            label=data['label'],
            vector_size=data['vector_size'],
            checksum=data['checksum']
        )

    def get_display_ciphertext(self, max_length: int = 64) -> str:
        """Truncated base64 ciphertext for display"""
        b64 = base64.b64encode(self.ciphertext).decode('utf-8')
        if len(b64) > max_length:
            return f"{b64[:max_length]}..."
        return b64


def _checksum(ciphertext: bytes) -> str:
    return hashlib.sha256(ciphertext).hexdigest()[:12]


class FHEEngine:
    """
    Fully Homomorphic Encryption Engine using TenSEAL CKKS

    Security Parameters:
    - poly_modulus_degree: 8192 (128-bit security)
    - coeff_mod_bit_sizes: [60, 40, 40, 60]
    - global_scale: 2^40
    """

    def __init__(self,
                 poly_modulus_degree: int = 8192,
                 coeff_mod_bit_sizes: List[int] = None,
                 global_scale: float = 2**40):
        if coeff_mod_bit_sizes is None:
            coeff_mod_bit_sizes = [60, 40, 40, 60]

        self.poly_modulus_degree = poly_modulus_degree
        self.coeff_mod_bit_sizes = coeff_mod_bit_sizes
        self.global_scale = global_scale

        self.context = ts.context(
            ts.SCHEME_TYPE.CKKS,
            poly_modulus_degree=poly_modulus_degree,
            coeff_mod_bit_sizes=coeff_mod_bit_sizes
        )
        # Galois keys are needed for sum()
        self.context.generate_galois_keys()
        self.context.generate_relin_keys()
        self.context.global_scale = global_scale

        self.created_at = datetime.now().isoformat()

    def get_public_context(self) -> bytes:
        """
        Public context (no secret key): can encrypt and compute, NOT decrypt
        """
        if not self.context.is_private():
            return self.context.serialize()
        public_ctx = self.context.copy()
        public_ctx.make_context_public()
        return public_ctx.serialize()

    def get_context_hash(self) -> str:
        return hashlib.sha256(self.get_public_context()).hexdigest()[:16]

    @classmethod
    def from_context(cls, context_bytes: bytes) -> 'FHEEngine':
        """Reconstruct an engine from a serialized context"""
        engine = cls.__new__(cls)
        engine.context = ts.context_from(context_bytes)
        engine.poly_modulus_degree = None
        engine.coeff_mod_bit_sizes = []  # Not recoverable from context
        engine.global_scale = engine.context.global_scale
        engine.created_at = datetime.now().isoformat()
        return engine

    def has_secret_key(self) -> bool:
        return self.context.is_private()

    def encrypt(self,
                values: Union[List[float], np.ndarray],
                label: str = "theorem") -> EncryptedTheorem:
        """
        Encrypt a vector of real numbers

        Args:
            values: Theorem parameters
            label: Metadata label

        Returns:
            EncryptedTheorem
        """
        values = np.asarray(values, dtype=float).tolist()
        if not values:
            raise ValueError("Cannot encrypt empty vector")

        ciphertext = ts.ckks_vector(self.context, values).serialize()
        return EncryptedTheorem(
            ciphertext=ciphertext,
            timestamp=datetime.now().isoformat(),
            label=label,
            vector_size=len(values),
            checksum=_checksum(ciphertext)
        )

    def decrypt(self, encrypted: EncryptedTheorem) -> List[float]:
        """
        Raises:
            ValueError: If context has no secret key or checksum fails
        """
        if not self.context.is_private():
            raise ValueError("Cannot decrypt: context does not contain secret key")
        if not self.verify_encrypted(encrypted):
            raise ValueError("Ciphertext integrity check failed")

        decrypted = self._load(encrypted).decrypt()
        return decrypted[:encrypted.vector_size]

    def verify_encrypted(self, encrypted: EncryptedTheorem) -> bool:
        return _checksum(encrypted.ciphertext) == encrypted.checksum

    def _load(self, encrypted: EncryptedTheorem) -> ts.CKKSVector:
        return ts.ckks_vector_from(self.context, encrypted.ciphertext)

    def _save(self,
              vector: ts.CKKSVector,
              label: str,
              vector_size: int) -> EncryptedTheorem:
        ciphertext = vector.serialize()
        return EncryptedTheorem(
            ciphertext=ciphertext,
            timestamp=datetime.now().isoformat(),
            label=label,
            vector_size=vector_size,
            checksum=_checksum(ciphertext)
        )

    # ==================== HOMOMORPHIC OPERATIONS ====================

    def add_plain(self, encrypted: EncryptedTheorem, plaintext: float) -> EncryptedTheorem:
        """E(a) + b = E(a + b)"""
        result = self._load(encrypted) + plaintext
        return self._save(result, f"{encrypted.label}_add_plain", encrypted.vector_size)

    def multiply_plain(self, encrypted: EncryptedTheorem, plaintext: float) -> EncryptedTheorem:
        """E(a) * b = E(a * b)"""
        result = self._load(encrypted) * plaintext
        return self._save(result, f"{encrypted.label}_mul_plain", encrypted.vector_size)

    def sum_elements(self, encrypted: EncryptedTheorem) -> EncryptedTheorem:
        """E([a, b, c]) -> E([a + b + c])"""
        result = self._load(encrypted).sum()
        return self._save(result, f"{encrypted.label}_sum", 1)

    def compute_mean(self, encrypted: EncryptedTheorem) -> EncryptedTheorem:
        """E(mean) = E(sum) * 1/n"""
        return self.multiply_plain(self.sum_elements(encrypted), 1.0 / encrypted.vector_size)

    def rerandomize(self, encrypted: EncryptedTheorem) -> EncryptedTheorem:
        """
        Add a fresh encryption of zero. Same plaintext, new ciphertext,
        so every computation run yields distinct handles.
        """
        zero = ts.ckks_vector(self.context, [0.0] * encrypted.vector_size)
        result = self._load(encrypted) + zero
        return self._save(result, encrypted.label, encrypted.vector_size)

    def get_info(self) -> dict:
        return {
            'scheme': 'CKKS',
            'poly_modulus_degree': self.poly_modulus_degree,
            'coeff_mod_bit_sizes': self.coeff_mod_bit_sizes,
            'global_scale': self.global_scale,
            'security_level': '128-bit',
            'created_at': self.created_at,
            'context_hash': self.get_context_hash(),
            'has_secret_key': self.has_secret_key()
        }
