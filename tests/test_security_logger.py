"""
Audit Trail Tests
"""

from oracle_protocol.security_logger import OperationType, SecurityLogger


class TestSecurityLogger:

    def test_attack_signals_flagged(self):
        logger = SecurityLogger()
        logger.log("alice", OperationType.SUBMIT, {'theorem_id': 't1'})
        logger.log_callback_rejected(OperationType.CALLBACK_UNKNOWN, 9, "no such request")
        logger.log_callback_rejected(OperationType.CALLBACK_REPLAY, 42, "already processed")
        logger.log_callback_rejected(OperationType.CALLBACK_MALFORMED, 43, "bad bool")

        violations = logger.get_violations()
        assert [v.operation for v in violations] == ["callback_replay"]
        assert violations[0].details == {'request_id': 42, 'reason': "already processed"}

    def test_report_counts_each_kind(self):
        logger = SecurityLogger()
        logger.log_callback_rejected(OperationType.CALLBACK_STATE_MISMATCH, 1, "mismatch")
        logger.log_callback_rejected(OperationType.CALLBACK_INVALID_PROOF, 1, "forged")
        logger.log_callback_rejected(OperationType.CALLBACK_INVALID_PROOF, 2, "forged")

        report = logger.generate_audit_report()
        assert report['operations'] == {'callback_state_mismatch': 1, 'callback_invalid_proof': 2}
        assert len(report['attack_signals']) == 3
        assert "3 attack signal" in report['conclusion']

    def test_clean_report(self):
        logger = SecurityLogger()
        logger.log("owner", OperationType.ADMIN, {'action': 'open_batch'})
        assert logger.generate_audit_report()['conclusion'] == "No attack signals recorded."

    def test_sequence_ids(self):
        logger = SecurityLogger()
        entries = [logger.log("owner", OperationType.ADMIN) for _ in range(3)]
        assert [e.sequence_id for e in entries] == [1, 2, 3]

    def test_persistence(self, tmp_path):
        log_file = tmp_path / "audit.jsonl"
        first = SecurityLogger(str(log_file))
        first.log("alice", OperationType.SUBMIT)
        first.log_callback_rejected(OperationType.CALLBACK_REPLAY, 42, "already processed")

        reloaded = SecurityLogger(str(log_file))
        assert len(reloaded.get_all_entries()) == 2
        assert len(reloaded.get_violations()) == 1
        assert reloaded.log("owner", OperationType.ADMIN).sequence_id == 3

    def test_display_format(self):
        logger = SecurityLogger()
        logger.log("alice", OperationType.SUBMIT)
        logger.log_callback_rejected(OperationType.CALLBACK_REPLAY, 1, "again")

        assert [d['color'] for d in logger.to_display_format()] == ['green', 'red']
