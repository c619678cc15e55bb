"""
Server API Tests
================
HTTP surface of the theorem oracle, driven through FastAPI's TestClient.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from prover_server.server import ProverServer, create_app

from conftest import OWNER, PROVIDER, theorem_input

AS_OWNER = {"X-Actor": OWNER}
AS_PROVIDER = {"X-Actor": PROVIDER}


@pytest.fixture
def client(ready):
    return TestClient(create_app(ProverServer(ready.protocol, ready.oracle)))


def submit(client, name="Twin primes"):
    response = client.post("/api/theorems", json={
        "name": name,
        "encrypted_input": theorem_input()
    }, headers=AS_PROVIDER)
    assert response.status_code == 200, response.text
    return response.json()


def callback_body(response):
    return {
        "request_id": response.request_id,
        "payload": response.payload.hex(),
        "proof": base64.b64encode(response.proof).decode()
    }


class TestPublicEndpoints:

    def test_root_and_availability(self, client):
        assert client.get("/").json()["available"] is True
        assert client.get("/api/available").json() == {"available": True}

    def test_status(self, client):
        status = client.get("/status").json()
        assert status["status"] == "running"
        assert status["protocol"]["active_batch_id"] == 1
        assert status["oracle_jobs_pending"] == 0

    def test_public_context_without_encryptor(self, client):
        assert client.get("/api/context/public").status_code == 404


class TestProviderFlow:

    def test_submit_prove_callback(self, client, ready):
        theorem = submit(client)
        assert theorem["status"] == "pending"
        assert theorem["batch_id"] == 1

        prove = client.post(f"/api/theorems/{theorem['theorem_id']}/prove", headers=AS_PROVIDER)
        assert prove.status_code == 200
        request_id = prove.json()["request_id"]
        assert request_id == 42

        response = client.post("/api/oracle/callback", json=callback_body(ready.oracle.respond(request_id)))
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processed"
        assert body["event"]["result_value"] == 16
        assert body["event"]["result_flag"] is True

        assert client.get(f"/api/theorems/{theorem['theorem_id']}").json()["status"] == "proved"
        assert client.get(f"/api/requests/{request_id}").json()["processed"] is True
        assert len(client.get("/api/events").json()["events"]) == 1

        listing = client.get("/api/theorems").json()
        assert listing["counts"]["proved"] == 1

    def test_replayed_callback_conflicts(self, client, ready):
        theorem = submit(client)
        request_id = client.post(f"/api/theorems/{theorem['theorem_id']}/prove",
                                 headers=AS_PROVIDER).json()["request_id"]
        body = callback_body(ready.oracle.respond(request_id))

        assert client.post("/api/oracle/callback", json=body).status_code == 200
        replay = client.post("/api/oracle/callback", json=body)

        assert replay.status_code == 409
        assert replay.json()["error"] == "replay_attempt"
        assert replay.json()["retryable"] is False

    def test_forged_proof_unauthorized(self, client, ready):
        theorem = submit(client)
        request_id = client.post(f"/api/theorems/{theorem['theorem_id']}/prove",
                                 headers=AS_PROVIDER).json()["request_id"]
        body = callback_body(ready.oracle.respond(request_id))
        body["proof"] = base64.b64encode(b'{"key_id": "x", "signature": "AAAA"}').decode()

        response = client.post("/api/oracle/callback", json=body)
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_proof"

        audit = client.get("/api/audit").json()
        assert audit["operations"]["callback_invalid_proof"] == 1
        assert len(audit["attack_signals"]) == 1

    @pytest.mark.parametrize("raw_proof", [
        b'{"key_id": ["x"], "signature": "AAAA"}',
        b'{"key_id": {"a": 1}, "signature": "AAAA"}',
        b"[" * 100000,
    ])
    def test_hostile_proof_is_invalid_not_crash(self, client, ready, raw_proof):
        theorem = submit(client)
        request_id = client.post(f"/api/theorems/{theorem['theorem_id']}/prove",
                                 headers=AS_PROVIDER).json()["request_id"]
        body = callback_body(ready.oracle.respond(request_id))
        body["proof"] = base64.b64encode(raw_proof).decode()

        response = client.post("/api/oracle/callback", json=body)
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_proof"
        assert client.get("/api/audit").json()["operations"]["callback_invalid_proof"] == 1

    def test_unknown_computation_is_client_error(self, client):
        theorem = submit(client)
        response = client.post(f"/api/theorems/{theorem['theorem_id']}/prove",
                               json={"computation": "nope"}, headers=AS_PROVIDER)

        assert response.status_code == 400
        assert response.json()["error"] == "computation_failed"
        assert client.get(f"/api/theorems/{theorem['theorem_id']}").json()["status"] == "pending"

    def test_malformed_encrypted_input_is_client_error(self, client):
        response = client.post("/api/theorems", json={
            "name": "x", "encrypted_input": {"ciphertext": "????"}
        }, headers=AS_PROVIDER)
        response = client.post(f"/api/theorems/{response.json()['theorem_id']}/prove",
                               headers=AS_PROVIDER)

        assert response.status_code == 400
        assert response.json()["error"] == "computation_failed"

    def test_second_prove_while_proving_conflicts(self, client, ready):
        theorem = submit(client)
        path = f"/api/theorems/{theorem['theorem_id']}/prove"
        request_id = client.post(path, headers=AS_PROVIDER).json()["request_id"]
        ready.clock.advance(60)

        response = client.post(path, headers=AS_PROVIDER)
        assert response.status_code == 409
        assert response.json()["error"] == "proof_in_progress"
        assert response.json()["request_id"] == request_id

    def test_bad_encoding_rejected_early(self, client):
        response = client.post("/api/oracle/callback", json={
            "request_id": 1, "payload": "zz", "proof": ""
        })
        assert response.status_code == 400

    def test_unknown_request(self, client):
        response = client.post("/api/oracle/callback", json={
            "request_id": 999, "payload": "", "proof": ""
        })
        assert response.status_code == 404
        assert response.json()["error"] == "unknown_request"

    def test_cooldown_is_retryable(self, client):
        submit(client)
        response = client.post("/api/theorems", json={
            "name": "again", "encrypted_input": theorem_input()
        }, headers=AS_PROVIDER)

        assert response.status_code == 429
        assert response.json()["retryable"] is True
        assert "retry_at" in response.json()

    def test_outsider_forbidden(self, client):
        response = client.post("/api/theorems", json={
            "name": "x", "encrypted_input": theorem_input()
        }, headers={"X-Actor": "mallory"})
        assert response.status_code == 403

    def test_missing_input(self, client):
        response = client.post("/api/theorems", json={"name": "x"}, headers=AS_PROVIDER)
        assert response.status_code == 400

    def test_unknown_theorem(self, client):
        response = client.get("/api/theorems/thm-missing")
        assert response.status_code == 404
        assert response.json()["error"] == "unknown_theorem"


class TestOracleDelivery:

    def test_deliver_pending(self, client):
        theorem = submit(client)
        client.post(f"/api/theorems/{theorem['theorem_id']}/prove", headers=AS_PROVIDER)

        response = client.post("/api/oracle/deliver", headers=AS_OWNER)
        delivered = response.json()["delivered"]

        assert response.status_code == 200
        assert len(delivered) == 1
        assert delivered[0]["error"] is None
        assert delivered[0]["event"]["request_id"] == 42

    def test_deliver_owner_only(self, client):
        assert client.post("/api/oracle/deliver", headers=AS_PROVIDER).status_code == 403


class TestAdminEndpoints:

    def test_pause_suspends_submissions(self, client):
        assert client.post("/api/admin/pause", json={"paused": True},
                           headers=AS_OWNER).json() == {"paused": True}

        response = client.post("/api/theorems", json={
            "name": "x", "encrypted_input": theorem_input()
        }, headers=AS_PROVIDER)
        assert response.status_code == 503
        assert client.get("/api/available").json()["available"] is False

    def test_batch_lifecycle(self, client):
        assert client.post("/api/admin/batches", headers=AS_OWNER).json()["batch_id"] == 2

        closed = client.post("/api/admin/batches/2/close", headers=AS_OWNER).json()
        assert closed["is_active"] is False

        response = client.post("/api/theorems", json={
            "name": "x", "encrypted_input": theorem_input()
        }, headers=AS_PROVIDER)
        assert response.status_code == 409
        assert response.json()["error"] == "batch_not_active"

    def test_close_unknown_batch(self, client):
        assert client.post("/api/admin/batches/9/close", headers=AS_OWNER).status_code == 404

    def test_provider_management(self, client):
        assert client.post("/api/admin/providers", json={"actor": "bob"},
                           headers=AS_OWNER).status_code == 200
        assert client.delete(f"/api/admin/providers/{PROVIDER}",
                             headers=AS_OWNER).json()["is_provider"] is False

        response = client.post("/api/theorems", json={
            "name": "x", "encrypted_input": theorem_input()
        }, headers=AS_PROVIDER)
        assert response.status_code == 403

    def test_cooldown_update(self, client):
        assert client.post("/api/admin/cooldown", json={"cooldown_seconds": 0},
                           headers=AS_OWNER).json() == {"cooldown_seconds": 0.0}
        assert client.post("/api/admin/cooldown", json={"cooldown_seconds": -1},
                           headers=AS_OWNER).status_code == 400

    def test_admin_requires_owner(self, client):
        response = client.post("/api/admin/batches", headers=AS_PROVIDER)
        assert response.status_code == 403
        assert response.json()["error"] == "not_authorized"

    def test_invalid_oracle_key(self, client):
        response = client.post("/api/admin/oracle-keys", json={"public_key_pem": "not a key"},
                               headers=AS_OWNER)
        assert response.status_code == 400
