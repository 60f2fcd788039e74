from __future__ import annotations

import logging
from typing import Any

from clinic_recalls.models.recall_rule import NotificationChannel
from clinic_recalls.services.error_reporting import ErrorReporter

logger = logging.getLogger("clinic_recalls.dispatch")


def attempt_delivery(
    channel: NotificationChannel,
    transport: Any,
    destination: str,
    subject: str,
    body: str,
    *,
    reporter: ErrorReporter | None = None,
    source: str = "recalls_send",
    context: dict[str, Any] | None = None,
) -> bool:
    """Make one transport call and turn its outcome into ``delivered``.

    Email transports are called as ``send(to, subject, body)`` and SMS
    transports as ``send(to, body, patient_id=...)``. A raised exception or an
    explicit ``False`` return is a failed attempt; nothing propagates.
    """
    context = dict(context or {})
    label = channel.value.lower()
    try:
        if channel == NotificationChannel.sms:
            result = transport.send(destination, body, patient_id=context.get("patient_id"))
        else:
            result = transport.send(destination, subject, body)
    except Exception as exc:  # any transport failure is a failed attempt
        logger.warning("%s delivery failed (%s): %s", label, context, exc)
        if reporter is not None:
            reporter.report(
                message=f"{label} delivery failed",
                source=source,
                context={**context, "channel": channel.value},
                error=exc,
            )
        return False

    if result is False:
        logger.warning("%s transport reported failure (%s)", label, context)
        if reporter is not None:
            reporter.report(
                message=f"{label} transport returned false",
                source=source,
                context={**context, "channel": channel.value},
            )
        return False

    return True
