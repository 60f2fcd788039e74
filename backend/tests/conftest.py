import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_recalls.models import (
    Appointment,
    AppointmentStatus,
    Base,
    Patient,
    Recall,
    RecallRule,
    RecallStatus,
)


class RecordingEmailTransport:
    def __init__(self, fail=False, result=None):
        self.fail = fail
        self.result = result
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append({"to": to, "subject": subject, "body": body})
        if self.fail:
            raise RuntimeError("email provider down")
        return self.result if self.result is not None else {"id": f"email-{len(self.sent)}"}


class RecordingSmsTransport:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to, body, *, patient_id=None):
        self.sent.append({"to": to, "body": body, "patient_id": patient_id})
        if self.fail:
            raise RuntimeError("sms provider down")
        return "SENT"


class RecordingReporter:
    def __init__(self):
        self.reports = []

    def report(self, *, message, source=None, path=None, context=None, error=None, code=None, request_id=None):
        error_code = code or f"ERR-TEST-{len(self.reports) + 1:04d}"
        self.reports.append(
            {
                "code": error_code,
                "message": message,
                "source": source,
                "path": path,
                "context": context,
                "error": error,
            }
        )
        return error_code


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def email_transport():
    return RecordingEmailTransport()


@pytest.fixture
def sms_transport():
    return RecordingSmsTransport()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def make_patient(db):
    def _make(first_name="Maria", last_name="Rossi", email="m@x.it", phone="333 1234567"):
        patient = Patient(first_name=first_name, last_name=last_name, email=email, phone=phone)
        db.add(patient)
        db.commit()
        return patient

    return _make


@pytest.fixture
def make_rule(db):
    def _make(
        channel="EMAIL",
        service_type="Controllo annuale",
        interval_days=180,
        email_subject=None,
        message=None,
        template_name=None,
    ):
        rule = RecallRule(
            name=f"Richiamo {service_type}",
            service_type=service_type,
            interval_days=interval_days,
            channel=channel,
            email_subject=email_subject,
            message=message,
            template_name=template_name,
        )
        db.add(rule)
        db.commit()
        return rule

    return _make


@pytest.fixture
def make_recall(db, now):
    def _make(patient, rule, due_at=None, status=RecallStatus.pending):
        recall = Recall(
            patient_id=patient.id,
            rule_id=rule.id,
            due_at=due_at or now - timedelta(days=1),
            status=status,
        )
        db.add(recall)
        db.commit()
        return recall

    return _make


@pytest.fixture
def make_appointment(db, now):
    def _make(
        patient,
        starts_at=None,
        status=AppointmentStatus.confirmed,
        service_type="Controllo annuale",
        doctor_name="Dott. Bianchi",
    ):
        starts_at = starts_at or now + timedelta(days=2)
        appointment = Appointment(
            patient_id=patient.id,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=30),
            status=status,
            service_type=service_type,
            doctor_name=doctor_name,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make
