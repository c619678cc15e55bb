"""
Encrypted Proof Search Engine
=============================
Runs pluggable computations over encrypted theorems and returns ordered
output ciphertext handles. The protocol only ever sees the handles; the
ciphertexts stay in the CiphertextStore until the oracle decrypts them.
"""

import threading
from typing import Callable, Dict, List, Union

from .encryption_core import EncryptedTheorem, FHEEngine

# (engine, encrypted input) -> ordered output ciphertexts
Computation = Callable[[FHEEngine, EncryptedTheorem], List[EncryptedTheorem]]


class CiphertextStore:
    """Handle -> ciphertext map shared by the engine and the oracle"""

    def __init__(self):
        self._ciphertexts: Dict[bytes, EncryptedTheorem] = {}
        self._lock = threading.Lock()

    def put(self, encrypted: EncryptedTheorem) -> bytes:
        handle = encrypted.handle
        with self._lock:
            self._ciphertexts[handle] = encrypted
        return handle

    def get(self, handle: bytes) -> EncryptedTheorem:
        encrypted = self._ciphertexts.get(handle)
        if encrypted is None:
            raise KeyError(f"Unknown ciphertext handle {handle.hex()}")
        return encrypted

    def __contains__(self, handle: bytes) -> bool:
        return handle in self._ciphertexts

    def __len__(self) -> int:
        return len(self._ciphertexts)


def proof_search(engine: FHEEngine, encrypted: EncryptedTheorem) -> List[EncryptedTheorem]:
    """
    Default proof search over encrypted parameters.

    Outputs, in order:
    - E(step count): sum of the parameter vector
    - E(verdict): mean of the parameter vector, read as "proved" above 0.5
    """
    fresh = engine.rerandomize(encrypted)
    steps = engine.sum_elements(fresh)
    verdict = engine.compute_mean(fresh)
    return [steps, verdict]


class ProofSearchEngine:
    """
    Computation engine with a registry of computations keyed by tag.

    Features:
    - Accepts EncryptedTheorem objects or their dict form
    - Stores every output in the shared CiphertextStore
    - Returns output handles in computation order
    """

    def __init__(self, fhe_engine: FHEEngine, store: CiphertextStore = None):
        self.fhe_engine = fhe_engine
        self.store = store or CiphertextStore()
        self.computations: Dict[str, Computation] = {'proof_search': proof_search}
        self.runs = 0

    def register(self, tag: str, computation: Computation):
        self.computations[tag] = computation

    def run(self,
            encrypted_input: Union[EncryptedTheorem, dict],
            tag: str) -> List[bytes]:
        """
        Run a computation and return its output handles.

        Raises:
            ValueError: Unknown tag or corrupted input ciphertext
        """
        if tag not in self.computations:
            raise ValueError(f"Unknown computation: {tag}")

        if isinstance(encrypted_input, dict):
            encrypted_input = EncryptedTheorem.from_dict(encrypted_input)
        if not self.fhe_engine.verify_encrypted(encrypted_input):
            raise ValueError("Ciphertext integrity check failed")

        outputs = self.computations[tag](self.fhe_engine, encrypted_input)
        self.runs += 1
        return [self.store.put(output) for output in outputs]
