from clinic_recalls.core.errors import EmailDeliveryError
from clinic_recalls.models.recall_rule import NotificationChannel
from clinic_recalls.services.delivery import attempt_delivery


class RaisingTransport:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def send(self, *args, **kwargs):
        self.calls += 1
        raise self.exc


def test_email_success_calls_transport_once(email_transport, reporter):
    delivered = attempt_delivery(
        NotificationChannel.email,
        email_transport,
        "m@x.it",
        "Oggetto",
        "Testo",
        reporter=reporter,
    )

    assert delivered is True
    assert email_transport.sent == [{"to": "m@x.it", "subject": "Oggetto", "body": "Testo"}]
    assert reporter.reports == []


def test_sms_passes_patient_id_and_body_only(sms_transport):
    delivered = attempt_delivery(
        NotificationChannel.sms,
        sms_transport,
        "3331234567",
        "Oggetto",
        "Testo",
        context={"patient_id": 7},
    )

    assert delivered is True
    assert sms_transport.sent == [{"to": "3331234567", "body": "Testo", "patient_id": 7}]


def test_transport_exception_becomes_false_and_is_reported(reporter):
    transport = RaisingTransport(EmailDeliveryError("Resend error 422: invalid"))

    delivered = attempt_delivery(
        NotificationChannel.email,
        transport,
        "m@x.it",
        "Oggetto",
        "Testo",
        reporter=reporter,
        context={"record_id": 3},
    )

    assert delivered is False
    assert transport.calls == 1
    assert len(reporter.reports) == 1
    report = reporter.reports[0]
    assert report["message"] == "email delivery failed"
    assert report["context"] == {"record_id": 3, "channel": "EMAIL"}
    assert isinstance(report["error"], EmailDeliveryError)


def test_unexpected_exception_does_not_propagate():
    transport = RaisingTransport(TimeoutError("timed out"))

    assert attempt_delivery(NotificationChannel.sms, transport, "333", "s", "b") is False


def test_explicit_false_return_is_failure(reporter):
    class RefusingTransport:
        def send(self, to, subject, body):
            return False

    delivered = attempt_delivery(
        NotificationChannel.email, RefusingTransport(), "m@x.it", "s", "b", reporter=reporter
    )

    assert delivered is False
    assert reporter.reports[0]["message"] == "email transport returned false"
