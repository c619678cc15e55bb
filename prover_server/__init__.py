"""
Server Module - FHE Theorem Oracle Server Components
"""

from .server import create_app, ProverServer
from .oracle_relay import LocalDecryptionOracle, DecryptionJob, OracleResponse, DeliveryResult

__all__ = [
    'create_app',
    'ProverServer',
    'LocalDecryptionOracle',
    'DecryptionJob',
    'OracleResponse',
    'DeliveryResult'
]
