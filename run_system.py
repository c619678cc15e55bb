#!/usr/bin/env python3
"""
FHE Theorem Oracle Launcher
===========================
Start the oracle server, or run an in-process walkthrough:
1. Open a batch and admit a provider
2. Submit an encrypted theorem
3. Dispatch encrypted proof search to the decryption oracle
4. Deliver the signed callback, then replay it
"""

import argparse

from oracle_protocol.errors import ProtocolError


def print_banner():
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║   🔐  FHE Theorem Oracle - Verified Decryption Callbacks      ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """
    print(banner)


def run_walkthrough(owner: str, provider: str):
    from prover_server.server import ProverServer

    server = ProverServer.build(owner, cooldown_seconds=0.0)
    protocol = server.protocol
    protocol.add_provider(owner, provider)
    print(f"✓ Batch {protocol.batches.active_batch_id} open, provider '{provider}' admitted")

    encrypted = server.encryptor.encrypt([3.0, 5.0, 8.0, 13.0], "fibonacci_bound")
    theorem = protocol.submit_theorem(provider, encrypted, "Fibonacci growth bound")
    print(f"✓ Theorem submitted: {theorem.theorem_id}")
    print(f"   Ciphertext: {encrypted.get_display_ciphertext(40)}")

    request_id = protocol.request_proof(provider, theorem.theorem_id)
    request = protocol.get_request(request_id)
    print(f"✓ Decryption request {request_id} dispatched")
    print(f"   Commitment: {request.commitment.hex()}")

    response = server.oracle.respond(request_id)
    event = protocol.handle_callback(response.request_id, response.payload, response.proof)
    print(f"✓ Callback accepted: steps={event.result_value} proved={event.result_flag}")

    try:
        protocol.handle_callback(response.request_id, response.payload, response.proof)
    except ProtocolError as e:
        print(f"✓ Replay rejected: {e.kind}")

    report = protocol.logger.generate_audit_report()
    print(f"\n{report['conclusion']}")


def main():
    parser = argparse.ArgumentParser(
        description="FHE Theorem Oracle Launcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_system.py                    # Start server on port 8000
  python run_system.py --port 8080        # Custom port
  python run_system.py --walkthrough      # In-process demo, no server
        """
    )
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--owner", default="owner", help="Owner identity")
    parser.add_argument("--cooldown", type=float, default=60.0, help="Cooldown seconds")
    parser.add_argument("--audit-log", default=None, help="JSON-lines audit log file")
    parser.add_argument("--walkthrough", action="store_true", help="Run the in-process demo")
    parser.add_argument("--provider", default="alice", help="Provider identity for the demo")
    args = parser.parse_args()

    print_banner()

    if args.walkthrough:
        run_walkthrough(args.owner, args.provider)
        return

    import uvicorn
    from prover_server.server import ProverServer, create_app

    server = ProverServer.build(args.owner, args.cooldown, args.audit_log)
    uvicorn.run(create_app(server), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
