"""
FHE Theorem Oracle Server
=========================
FastAPI server that:
1. Accepts encrypted theorems from providers
2. Runs encrypted proof search and dispatches decryption requests
3. Receives oracle callbacks and releases verified results
4. Exposes owner administration and the audit trail
"""

import base64
import binascii
import secrets
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from oracle_protocol.errors import ProtocolError
from oracle_protocol.models import ProtocolConfig
from oracle_protocol.protocol import DEFAULT_CATEGORY, DEFAULT_COMPUTATION, TheoremOracleProtocol
from oracle_protocol.security_logger import SecurityLogger
from prover_server.oracle_relay import LocalDecryptionOracle


# ==================== PYDANTIC MODELS ====================

class TheoremSubmission(BaseModel):
    """Encrypted theorem from a provider"""
    name: str
    category: str = DEFAULT_CATEGORY
    encrypted_input: Optional[Dict[str, Any]] = None
    parameters: Optional[List[float]] = None


class ProveRequest(BaseModel):
    computation: str = DEFAULT_COMPUTATION


class OracleCallback(BaseModel):
    """Inbound oracle callback"""
    request_id: int
    payload: str   # hex
    proof: str     # base64


class ProviderUpdate(BaseModel):
    actor: str


class PauseUpdate(BaseModel):
    paused: bool


class CooldownUpdate(BaseModel):
    cooldown_seconds: float


class OracleKey(BaseModel):
    public_key_pem: str


ERROR_STATUS = {
    'not_authorized': 403,
    'service_suspended': 503,
    'cooldown_active': 429,
    'batch_not_active': 409,
    'unknown_batch': 404,
    'unknown_theorem': 404,
    'theorem_settled': 409,
    'proof_in_progress': 409,
    'unknown_request': 404,
    'replay_attempt': 409,
    'state_mismatch': 409,
    'invalid_proof': 401,
    'malformed_payload': 400,
    'oracle_dispatch_failed': 502,
    'computation_failed': 400,
}


# ==================== SERVER CLASS ====================

class ProverServer:
    """
    Main theorem oracle server

    Manages:
    - The protocol service object
    - The local decryption oracle (if running in-process)
    - The public-context encryptor for server-side encryption
    """

    def __init__(self,
                 protocol: TheoremOracleProtocol,
                 oracle: Optional[LocalDecryptionOracle] = None,
                 encryptor=None):
        self.protocol = protocol
        self.oracle = oracle
        self.encryptor = encryptor
        self.server_start_time = datetime.now()
        self.callbacks_received = 0

    @classmethod
    def build(cls,
              owner: str,
              cooldown_seconds: float = 60.0,
              audit_log: Optional[str] = None,
              open_batch: bool = True) -> 'ProverServer':
        """
        Wire up real components: CKKS engines, ciphertext store, oracle
        signer and the protocol. The computation engine only gets the
        public context; the secret context stays with the oracle.
        """
        from prover_fhe.encryption_core import FHEEngine
        from prover_fhe.computation import CiphertextStore, ProofSearchEngine
        from oracle_protocol.oracle_signing import OracleSigner

        oracle_fhe = FHEEngine()
        public_fhe = FHEEngine.from_context(oracle_fhe.get_public_context())
        store = CiphertextStore()

        domain_tag = f"fhe-theorem-oracle/{owner}/{oracle_fhe.get_context_hash()}/{secrets.token_hex(4)}".encode()
        signer = OracleSigner(domain_tag)
        oracle = LocalDecryptionOracle(oracle_fhe, store, signer)

        protocol = TheoremOracleProtocol(
            config=ProtocolConfig(owner=owner, cooldown_seconds=cooldown_seconds),
            engine=ProofSearchEngine(public_fhe, store),
            dispatcher=oracle,
            domain_tag=domain_tag,
            logger=SecurityLogger(audit_log)
        )
        protocol.register_oracle_key(owner, signer.get_public_key_pem())
        oracle.attach(protocol)
        if open_batch:
            protocol.open_batch(owner)

        return cls(protocol, oracle, public_fhe)

    def encrypt_parameters(self, parameters: List[float]) -> dict:
        if self.encryptor is None:
            raise HTTPException(status_code=400, detail="Server-side encryption unavailable")
        return self.encryptor.encrypt(parameters).to_dict()

    def get_status(self) -> dict:
        uptime = (datetime.now() - self.server_start_time).total_seconds()
        return {
            "status": "running",
            "uptime_seconds": round(uptime, 1),
            "callbacks_received": self.callbacks_received,
            "oracle_jobs_pending": len(self.oracle.pending_jobs()) if self.oracle else None,
            "protocol": self.protocol.get_status()
        }


# ==================== FASTAPI APP ====================

def create_app(server: ProverServer) -> FastAPI:
    """Build the FastAPI app around an explicitly constructed server"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        print("\n" + "=" * 60)
        print("🚀 FHE Theorem Oracle Starting")
        print("=" * 60)
        print(f"   Owner: {server.protocol.config.owner}")
        print(f"   Cooldown: {server.protocol.config.cooldown_seconds}s")
        print(f"   Oracle keys: {len(server.protocol.proof_verifier.public_keys)}")
        print("=" * 60 + "\n")

        yield

        print("\n🛑 FHE Theorem Oracle Shutting Down")

    app = FastAPI(
        title="FHE Theorem Oracle",
        description="Encrypted theorem proving with verified decryption oracle callbacks",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.server = server

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError):
        return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 400), content=exc.to_dict())

    protocol = server.protocol

    # ==================== PUBLIC ENDPOINTS ====================

    @app.get("/")
    async def root():
        return {
            "name": "FHE Theorem Oracle",
            "version": "1.0.0",
            "available": protocol.is_available(),
            "encryption": "Fully Homomorphic (CKKS)"
        }

    @app.get("/status")
    async def get_status():
        return server.get_status()

    @app.get("/api/available")
    async def is_available():
        return {"available": protocol.is_available()}

    @app.get("/api/context/public")
    async def get_public_context():
        """Public FHE context: clients can encrypt with it but NOT decrypt"""
        if server.encryptor is None:
            raise HTTPException(status_code=404, detail="No public context configured")
        return {
            "context": base64.b64encode(server.encryptor.get_public_context()).decode('utf-8'),
            "context_hash": server.encryptor.get_context_hash(),
            "scheme": "CKKS"
        }

    @app.get("/api/theorems")
    async def list_theorems():
        return {
            "theorems": [t.to_dict() for t in protocol.list_theorems()],
            "counts": protocol.status_counts().to_dict()
        }

    @app.get("/api/theorems/{theorem_id}")
    async def get_theorem(theorem_id: str):
        return protocol.get_theorem(theorem_id).to_dict()

    @app.get("/api/requests/{request_id}")
    async def get_request(request_id: int):
        return protocol.get_request(request_id).to_dict()

    @app.get("/api/events")
    async def list_events():
        return {"events": [e.to_dict() for e in protocol.events]}

    @app.get("/api/audit")
    async def audit_report():
        return protocol.logger.generate_audit_report()

    # ==================== PROVIDER ENDPOINTS ====================

    @app.post("/api/theorems")
    async def submit_theorem(submission: TheoremSubmission, x_actor: str = Header(...)):
        if submission.encrypted_input is not None:
            encrypted_input = submission.encrypted_input
        elif submission.parameters:
            encrypted_input = server.encrypt_parameters(submission.parameters)
        else:
            raise HTTPException(status_code=400, detail="encrypted_input or parameters required")

        record = protocol.submit_theorem(x_actor, encrypted_input, submission.name, submission.category)
        return record.to_dict()

    @app.post("/api/theorems/{theorem_id}/prove")
    async def request_proof(theorem_id: str,
                            body: Optional[ProveRequest] = None,
                            x_actor: str = Header(...)):
        computation = body.computation if body else DEFAULT_COMPUTATION
        request_id = protocol.request_proof(x_actor, theorem_id, computation)
        return {"theorem_id": theorem_id, "request_id": request_id, "status": "proving"}

    # ==================== ORACLE ENDPOINTS ====================

    @app.post("/api/oracle/callback")
    async def oracle_callback(callback: OracleCallback):
        """Publicly reachable; every field is untrusted"""
        try:
            payload = bytes.fromhex(callback.payload)
            proof = base64.b64decode(callback.proof, validate=True)
        except (ValueError, binascii.Error) as e:
            raise HTTPException(status_code=400, detail=f"Invalid encoding: {e}")

        server.callbacks_received += 1
        event = protocol.handle_callback(callback.request_id, payload, proof)
        return {"status": "processed", "event": event.to_dict()}

    @app.post("/api/oracle/deliver")
    async def deliver_pending(x_actor: str = Header(...)):
        """Ask the in-process oracle to deliver its pending callbacks (owner only)"""
        protocol.require_owner(x_actor)
        if server.oracle is None:
            raise HTTPException(status_code=404, detail="No local oracle")
        results = server.oracle.deliver_all()
        return {
            "delivered": [
                {
                    "request_id": r.request_id,
                    "event": r.event.to_dict() if r.event else None,
                    "error": r.error
                }
                for r in results
            ]
        }

    # ==================== ADMIN ENDPOINTS ====================

    @app.post("/api/admin/providers")
    async def add_provider(update: ProviderUpdate, x_actor: str = Header(...)):
        protocol.add_provider(x_actor, update.actor)
        return {"actor": update.actor, "is_provider": True}

    @app.delete("/api/admin/providers/{actor}")
    async def remove_provider(actor: str, x_actor: str = Header(...)):
        protocol.remove_provider(x_actor, actor)
        return {"actor": actor, "is_provider": False}

    @app.post("/api/admin/pause")
    async def set_paused(update: PauseUpdate, x_actor: str = Header(...)):
        protocol.set_paused(x_actor, update.paused)
        return {"paused": protocol.config.paused}

    @app.post("/api/admin/cooldown")
    async def set_cooldown(update: CooldownUpdate, x_actor: str = Header(...)):
        try:
            protocol.set_cooldown(x_actor, update.cooldown_seconds)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"cooldown_seconds": protocol.config.cooldown_seconds}

    @app.post("/api/admin/batches")
    async def open_batch(x_actor: str = Header(...)):
        return {"batch_id": protocol.open_batch(x_actor), "is_active": True}

    @app.post("/api/admin/batches/{batch_id}/close")
    async def close_batch(batch_id: int, x_actor: str = Header(...)):
        protocol.close_batch(x_actor, batch_id)
        return protocol.batches.get(batch_id).to_dict()

    @app.post("/api/admin/oracle-keys")
    async def register_oracle_key(key: OracleKey, x_actor: str = Header(...)):
        try:
            key_id = protocol.register_oracle_key(x_actor, key.public_key_pem)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"key_id": key_id}

    return app


def main():
    import argparse
    parser = argparse.ArgumentParser(description="FHE Theorem Oracle Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--owner", default="owner", help="Owner identity")
    parser.add_argument("--cooldown", type=float, default=60.0, help="Cooldown seconds")
    parser.add_argument("--audit-log", default=None, help="JSON-lines audit log file")
    args = parser.parse_args()

    server = ProverServer.build(args.owner, args.cooldown, args.audit_log)
    uvicorn.run(create_app(server), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
