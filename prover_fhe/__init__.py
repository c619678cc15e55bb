"""
Prover FHE - Encrypted Computation Engine
=========================================
Powered by TenSEAL with CKKS scheme for real-number operations
"""

from .encryption_core import FHEEngine, EncryptedTheorem
from .computation import ProofSearchEngine, CiphertextStore, proof_search

__all__ = ['FHEEngine', 'EncryptedTheorem', 'ProofSearchEngine', 'CiphertextStore', 'proof_search']
__version__ = '1.0.0'
