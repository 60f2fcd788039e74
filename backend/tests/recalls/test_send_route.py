import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from clinic_recalls.core.settings import Settings, get_settings
from clinic_recalls.db.session import get_db
from clinic_recalls.main import app
from clinic_recalls.models.recall import Recall, RecallStatus
from clinic_recalls.routers import cron as cron_router

CRON_SECRET = "test-cron-secret-0123456789"


@pytest.fixture
def settings():
    return Settings(_env_file=None, cron_secret=CRON_SECRET)


@pytest.fixture
def client(db, settings, email_transport, sms_transport, reporter):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[cron_router.get_email_transport] = lambda: email_transport
    app.dependency_overrides[cron_router.get_sms_transport] = lambda: sms_transport
    app.dependency_overrides[cron_router.get_error_reporter] = lambda: reporter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def due_recall(make_patient, make_rule, make_recall):
    return make_recall(make_patient(), make_rule(), due_at=None)


def _status(db, recall_id):
    db.expire_all()
    return db.scalar(select(Recall.status).where(Recall.id == recall_id))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize("method", ["get", "post"])
def test_valid_secret_runs_a_pass(client, db, due_recall, email_transport, method):
    recall_id = due_recall.id

    response = getattr(client, method)("/recalls/send", headers={"x-cron-secret": CRON_SECRET})

    assert response.status_code == 200, response.text
    assert response.json() == {"processed": 1, "appointment_reminders": 0}
    assert len(email_transport.sent) == 1
    assert _status(db, recall_id) == RecallStatus.contacted


@pytest.mark.parametrize("headers", [{}, {"x-cron-secret": "wrong"}])
def test_bad_secret_is_rejected_without_touching_recalls(
    client, db, due_recall, email_transport, reporter, headers
):
    recall_id = due_recall.id

    response = client.get("/recalls/send", headers=headers)

    assert response.status_code == 401
    payload = response.json()
    assert payload["error"] == "Unauthorized"
    assert payload["code"] == response.headers["x-error-code"]
    assert reporter.reports[0]["path"] == "/recalls/send"
    assert email_transport.sent == []
    assert _status(db, recall_id) == RecallStatus.pending


def test_missing_secret_fails_closed(client, settings, due_recall):
    settings.cron_secret = None

    response = client.get("/recalls/send")

    assert response.status_code == 401


def test_unauthenticated_mode_must_be_explicit(client, settings, due_recall):
    settings.cron_secret = None
    settings.cron_allow_unauthenticated = True

    response = client.get("/recalls/send")

    assert response.status_code == 200
    assert response.json()["processed"] == 1


def test_cycle_failure_returns_error_code(client, reporter, monkeypatch):
    def broken_cycle(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(cron_router, "run_dispatch_cycle", broken_cycle)

    response = client.post("/recalls/send", headers={"x-cron-secret": CRON_SECRET})

    assert response.status_code == 500
    payload = response.json()
    assert payload["error"] == "Errore invio richiami"
    assert payload["code"] == response.headers["x-error-code"]
    assert isinstance(reporter.reports[-1]["error"], RuntimeError)
