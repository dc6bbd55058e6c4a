import json
import logging

from ledger.config import LedgerConfig
from ledger.runtime.state.session import LedgerSession
from ledger.runtime.state.telemetry import LoggingTelemetryClient, NoOpTelemetryClient

TELEMETRY_LOGGER = "ledger.runtime.state.telemetry"


def make_config(tmp_path, **overrides):
    return LedgerConfig(
        state_path=tmp_path / "ledger.json",
        audit_log_path=tmp_path / "audit.jsonl",
        **overrides,
    )


def test_close_writes_state_even_when_clean(tmp_path):
    config = make_config(tmp_path)

    session = LedgerSession.open(config, start_scheduler=False)
    assert session.close() is True

    saved = json.loads(config.state_path.read_text(encoding="utf-8"))
    assert saved["session_metadata"]["current_session_id"] == session.session_id


def test_reopen_restores_data_in_a_new_session(tmp_path):
    config = make_config(tmp_path)

    with LedgerSession.open(config, start_scheduler=False) as first:
        service = first.operations.register_service(name="qr", type="api").data
        first_id = first.session_id

    with LedgerSession.open(config, start_scheduler=False) as second:
        restored = second.operations.get_service(service_id=service.id).data
        session = second.store.read(lambda g: g.session_metadata.model_copy())

    assert restored.name == "qr"
    assert session.current_session_id != first_id
    assert session.previous_session_id == first_id


def test_session_wires_config_into_operations_and_audit(tmp_path):
    config = make_config(tmp_path, kill_threshold=-1.0)

    with LedgerSession.open(config, start_scheduler=False) as session:
        service = session.operations.register_service(name="qr", type="api").data
        result = session.operations.update_service_performance(service_id=service.id, daily_costs=2.0)

    assert result.data.status == "killed"
    lines = config.audit_log_path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["event"] == "auto_kill_service"


def test_scheduler_runs_while_session_is_open(tmp_path):
    config = make_config(tmp_path, flush_interval_s=0.01)

    with LedgerSession.open(config) as session:
        assert session.durability.is_running

    assert not session.durability.is_running


def test_debug_logging_turns_on_span_logging(tmp_path, caplog):
    config = make_config(tmp_path)

    with caplog.at_level(logging.DEBUG, logger=TELEMETRY_LOGGER):
        with LedgerSession.open(config, start_scheduler=False) as session:
            session.operations.get_all_services()

    assert isinstance(session.operations.telemetry, LoggingTelemetryClient)
    assert "[telemetry] ledger.operation" in caplog.text
    assert "[telemetry] ledger.flush" in caplog.text


def test_spans_are_discarded_without_debug_logging(tmp_path, caplog):
    config = make_config(tmp_path)

    with caplog.at_level(logging.INFO, logger=TELEMETRY_LOGGER):
        with LedgerSession.open(config, start_scheduler=False) as session:
            session.operations.get_all_services()

    assert isinstance(session.operations.telemetry, NoOpTelemetryClient)
    assert "[telemetry]" not in caplog.text
