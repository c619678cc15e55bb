"""
Security Audit Logger
=====================
Append-only audit trail of every admitted action and every oracle
callback, accepted or rejected.

Purpose:
- Keep a forensic record of rejected callbacks
- Distinguish replay, state mismatch and invalid proof in the record
- Flag attack signals for operators
"""

import json
import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class OperationType(Enum):
    """Kinds of audited operations"""
    SUBMIT = "submit"
    DISPATCH = "dispatch"
    CALLBACK_ACCEPTED = "callback_accepted"
    CALLBACK_UNKNOWN = "callback_unknown_request"
    CALLBACK_REPLAY = "callback_replay"
    CALLBACK_STATE_MISMATCH = "callback_state_mismatch"
    CALLBACK_INVALID_PROOF = "callback_invalid_proof"
    CALLBACK_MALFORMED = "callback_malformed_payload"
    ADMISSION_DENIED = "admission_denied"
    ADMIN = "admin"


# Rejections that indicate tampering or a compromised oracle channel
ATTACK_SIGNALS = {
    OperationType.CALLBACK_REPLAY,
    OperationType.CALLBACK_STATE_MISMATCH,
    OperationType.CALLBACK_INVALID_PROOF,
}


@dataclass
class AuditEntry:
    """Single audit log entry"""
    timestamp: str
    entity: str          # actor identity, 'oracle' or 'owner'
    operation: str
    is_safe: bool        # False for attack signals
    details: Dict[str, Any]
    sequence_id: int

    def to_dict(self) -> dict:
        return asdict(self)


class SecurityLogger:
    """
    Immutable audit log for the oracle protocol.

    Every callback outcome is logged under its own operation kind so a
    commitment mismatch is never confused with a forged proof.
    """

    def __init__(self, log_file: Optional[str] = None):
        """
        Args:
            log_file: Optional JSON-lines file to persist entries
        """
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()
        self._sequence = 0
        self.log_file = Path(log_file) if log_file else None

        if self.log_file and self.log_file.exists():
            self._load_from_file()

    def log(self,
            entity: str,
            operation: OperationType,
            details: Dict[str, Any] = None) -> AuditEntry:
        """
        Record an operation.

        Returns:
            The created entry
        """
        with self._lock:
            self._sequence += 1

            entry = AuditEntry(
                timestamp=datetime.now().isoformat(),
                entity=entity,
                operation=operation.value,
                is_safe=operation not in ATTACK_SIGNALS,
                details=details or {},
                sequence_id=self._sequence
            )
            self._entries.append(entry)

            if self.log_file:
                self._append_to_file(entry)

            return entry

    def log_callback_rejected(self,
                              operation: OperationType,
                              request_id: int,
                              reason: str) -> AuditEntry:
        return self.log(
            entity='oracle',
            operation=operation,
            details={'request_id': request_id, 'reason': reason}
        )

    def get_all_entries(self) -> List[AuditEntry]:
        return list(self._entries)

    def get_entries_for_operation(self, operation: OperationType) -> List[AuditEntry]:
        return [e for e in self._entries if e.operation == operation.value]

    def get_violations(self) -> List[AuditEntry]:
        """Get all attack-signal entries"""
        return [e for e in self._entries if not e.is_safe]

    def generate_audit_report(self) -> Dict[str, Any]:
        """
        Summarize the log for operators.

        Counts each rejection kind separately.
        """
        by_operation: Dict[str, int] = {}
        for e in self._entries:
            by_operation[e.operation] = by_operation.get(e.operation, 0) + 1

        violations = self.get_violations()
        return {
            'report_generated': datetime.now().isoformat(),
            'total_log_entries': len(self._entries),
            'operations': by_operation,
            'attack_signals': [e.to_dict() for e in violations],
            'conclusion': (
                "No attack signals recorded."
                if not violations
                else f"{len(violations)} attack signal(s) recorded on the oracle channel."
            )
        }

    def _append_to_file(self, entry: AuditEntry):
        with open(self.log_file, 'a') as f:
            f.write(json.dumps(entry.to_dict()) + '\n')

    def _load_from_file(self):
        with open(self.log_file, 'r') as f:
            for line in f:
                if line.strip():
                    data = json.loads(line)
                    self._entries.append(AuditEntry(**data))
                    self._sequence = max(self._sequence, data['sequence_id'])

    def to_display_format(self, max_entries: int = 50) -> List[Dict[str, Any]]:
        """Recent entries for a dashboard, red for attack signals"""
        display = []
        for e in self._entries[-max_entries:]:
            display.append({
                'time': e.timestamp.split('T')[1][:8],
                'color': 'green' if e.is_safe else 'red',
                'entity': e.entity,
                'operation': e.operation,
                'safe': e.is_safe,
                'details': e.details
            })
        return display
