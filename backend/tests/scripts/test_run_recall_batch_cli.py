import json
from datetime import datetime, timezone

from clinic_recalls.scripts import run_recall_batch as cli


def test_parse_args_defaults():
    args = cli.parse_args([])

    assert args.batch_size is None
    assert args.now is None
    assert args.skip_enqueue is False


def test_parse_now_assumes_utc_for_naive_values():
    args = cli.parse_args(["--now", "2026-03-10T09:00:00", "--batch-size", "10", "--skip-enqueue"])

    assert args.now == datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
    assert args.batch_size == 10
    assert args.skip_enqueue is True


def test_main_runs_one_cycle(monkeypatch, session_factory, capsys):
    calls = {}

    def fake_cycle(db, **kwargs):
        calls.update(kwargs)
        return {"processed": 3, "appointment_reminders": 1}

    monkeypatch.setattr(cli, "run_dispatch_cycle", fake_cycle)
    monkeypatch.setattr(cli, "SessionLocal", session_factory)
    monkeypatch.setattr(cli, "validate_settings", lambda settings: None)

    exit_code = cli.main(["--batch-size", "5", "--skip-enqueue"])

    assert exit_code == 0
    assert calls["batch_size"] == 5
    assert calls["enqueue"] is False
    assert json.loads(capsys.readouterr().out) == {"appointment_reminders": 1, "processed": 3}
