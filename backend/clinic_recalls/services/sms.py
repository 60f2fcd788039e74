from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_recalls.core.errors import SmsDeliveryError
from clinic_recalls.core.settings import Settings
from clinic_recalls.models.sms_log import SmsLog, SmsLogStatus
from clinic_recalls.services.phone import normalize_italian_phone

logger = logging.getLogger("clinic_recalls.sms")

CLICKSEND_API_URL = "https://rest.clicksend.com/v3/sms/send"


class SmsTransport(Protocol):
    def send(self, to: str, body: str, *, patient_id: int | None = None) -> Any: ...


class ClickSendSmsTransport:
    """ClickSend adapter.

    Without credentials the send is simulated and logged. Every attempt is
    recorded in ``sms_logs`` in its own session, committed before ``send``
    returns, so the row survives a rollback of the caller's transaction.
    """

    def __init__(
        self,
        *,
        username: str | None,
        api_key: str | None,
        sender: str | None = None,
        timeout_seconds: float = 10.0,
        session_factory: Callable[[], Session] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.username = username
        self.api_key = api_key
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self.session_factory = session_factory
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        session_factory: Callable[[], Session] | None = None,
        client: httpx.Client | None = None,
    ) -> ClickSendSmsTransport:
        return cls(
            username=settings.clicksend_username,
            api_key=settings.clicksend_api_key,
            sender=settings.clicksend_from,
            timeout_seconds=settings.transport_timeout_seconds,
            session_factory=session_factory,
            client=client,
        )

    @property
    def configured(self) -> bool:
        return bool(self.username and self.api_key)

    def _post(self, client: httpx.Client, payload: dict[str, Any]) -> httpx.Response:
        return client.post(
            CLICKSEND_API_URL,
            json=payload,
            auth=(self.username or "", self.api_key or ""),
            timeout=self.timeout_seconds,
        )

    def _deliver(self, to: str, body: str) -> SmsLogStatus:
        if not self.configured:
            logger.info("SMS send simulated (ClickSend not configured)")
            return SmsLogStatus.simulated

        message: dict[str, Any] = {"source": "api", "body": body, "to": to}
        if self.sender:
            message["from"] = self.sender
        payload = {"messages": [message]}
        try:
            if self._client is not None:
                response = self._post(self._client, payload)
            else:
                with httpx.Client() as client:
                    response = self._post(client, payload)
        except httpx.HTTPError as exc:
            raise SmsDeliveryError(f"ClickSend request failed: {exc}") from exc

        if response.status_code >= 400:
            raise SmsDeliveryError(
                f"ClickSend error {response.status_code}: {response.text or response.reason_phrase}"
            )
        return SmsLogStatus.sent

    def _log(self, log: SmsLog) -> None:
        if self.session_factory is None:
            return
        db = self.session_factory()
        try:
            db.add(log)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not persist SMS log for %s", log.to)
        finally:
            db.close()

    def send(self, to: str, body: str, *, patient_id: int | None = None) -> SmsLogStatus:
        recipient = normalize_italian_phone(to)
        if not recipient:
            raise SmsDeliveryError("Recipient number missing")

        error: str | None = None
        try:
            status = self._deliver(recipient, body)
        except SmsDeliveryError as exc:
            status = SmsLogStatus.failed
            error = str(exc)

        self._log(
            SmsLog(
                to=recipient,
                body=body,
                status=status,
                error=error,
                patient_id=patient_id,
            )
        )

        if status == SmsLogStatus.failed:
            raise SmsDeliveryError(error or "SMS send failed")
        return status
