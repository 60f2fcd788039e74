from datetime import timedelta

import pytest
from sqlalchemy import select

from clinic_recalls.models.appointment import AppointmentStatus
from clinic_recalls.models.recall import Recall, RecallStatus
from clinic_recalls.services.recall_scheduling import enqueue_recurring_recalls, next_recall_due
from clinic_recalls.services.timeutils import ensure_utc


def _recalls(db):
    db.expire_all()
    return list(db.scalars(select(Recall).order_by(Recall.id)))


@pytest.mark.parametrize(
    "visit_days_ago, recall_days_ago, expected_offset_days",
    [
        (160, None, 20),
        (200, None, 0),
        (400, 170, 10),
        (100, 300, 80),
    ],
)
def test_next_recall_due(now, visit_days_ago, recall_days_ago, expected_offset_days):
    last_recall_due = now - timedelta(days=recall_days_ago) if recall_days_ago is not None else None

    due = next_recall_due(
        last_visit=now - timedelta(days=visit_days_ago),
        last_recall_due=last_recall_due,
        interval_days=180,
        now=now,
    )

    assert due == now + timedelta(days=expected_offset_days)


def test_overdue_patient_gets_recall_due_now(db, now, make_patient, make_rule, make_appointment):
    patient = make_patient()
    rule = make_rule(interval_days=180)
    make_appointment(patient, starts_at=now - timedelta(days=200), status=AppointmentStatus.completed)

    created = enqueue_recurring_recalls(db, now=now)

    assert created == 1
    [recall] = _recalls(db)
    assert recall.rule_id == rule.id
    assert recall.status == RecallStatus.pending
    assert ensure_utc(recall.due_at) == now


def test_recall_beyond_horizon_is_not_created_yet(db, now, make_patient, make_rule, make_appointment):
    make_rule(interval_days=180)
    make_appointment(make_patient(), starts_at=now - timedelta(days=100), status=AppointmentStatus.completed)

    assert enqueue_recurring_recalls(db, now=now, horizon_days=30) == 0
    assert _recalls(db) == []


def test_open_recall_blocks_a_new_one(db, now, make_patient, make_rule, make_recall, make_appointment):
    patient = make_patient()
    rule = make_rule(interval_days=180)
    make_appointment(patient, starts_at=now - timedelta(days=200), status=AppointmentStatus.completed)
    make_recall(patient, rule, due_at=now + timedelta(days=5))

    assert enqueue_recurring_recalls(db, now=now) == 0
    assert len(_recalls(db)) == 1


def test_only_matching_completed_visits_count(db, now, make_patient, make_rule, make_appointment):
    make_rule(service_type="Igiene", interval_days=180)
    patient = make_patient()
    make_appointment(
        patient,
        starts_at=now - timedelta(days=200),
        status=AppointmentStatus.completed,
        service_type="Controllo annuale",
    )
    make_appointment(
        patient,
        starts_at=now - timedelta(days=190),
        status=AppointmentStatus.cancelled,
        service_type="Igiene",
    )

    assert enqueue_recurring_recalls(db, now=now) == 0


def test_any_rule_counts_every_service(db, now, make_patient, make_rule, make_appointment):
    make_rule(service_type="ANY", interval_days=180)
    make_appointment(
        make_patient(),
        starts_at=now - timedelta(days=170),
        status=AppointmentStatus.completed,
        service_type="Ortodonzia",
    )

    assert enqueue_recurring_recalls(db, now=now) == 1
    [recall] = _recalls(db)
    assert ensure_utc(recall.due_at) == now + timedelta(days=10)


def test_cadence_continues_from_last_recall(db, now, make_patient, make_rule, make_recall, make_appointment):
    patient = make_patient()
    rule = make_rule(interval_days=180)
    make_appointment(patient, starts_at=now - timedelta(days=400), status=AppointmentStatus.completed)
    make_recall(patient, rule, due_at=now - timedelta(days=170), status=RecallStatus.contacted)

    assert enqueue_recurring_recalls(db, now=now) == 1
    newest = _recalls(db)[-1]
    assert newest.status == RecallStatus.pending
    assert ensure_utc(newest.due_at) == now + timedelta(days=10)


def test_non_positive_interval_is_ignored(db, now, make_patient, make_rule, make_appointment):
    make_rule(interval_days=0)
    make_appointment(make_patient(), starts_at=now - timedelta(days=10), status=AppointmentStatus.completed)

    assert enqueue_recurring_recalls(db, now=now) == 0
