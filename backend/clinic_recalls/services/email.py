from __future__ import annotations

import html
import logging
from typing import Any, Protocol

import httpx

from clinic_recalls.core.errors import EmailDeliveryError
from clinic_recalls.core.settings import Settings

logger = logging.getLogger("clinic_recalls.email")

RESEND_API_URL = "https://api.resend.com/emails"


class EmailTransport(Protocol):
    def send(self, to: str, subject: str, body: str) -> Any: ...


def render_email_html(body: str, clinic_name: str | None = None) -> str:
    paragraphs = html.escape(body).replace("\n", "<br>")
    footer = html.escape(clinic_name) if clinic_name else ""
    if not footer:
        return f"<p>{paragraphs}</p>"
    return f"<p>{paragraphs}</p><p style=\"font-size:12px;color:#6b7280;\">{footer}</p>"


class ResendEmailTransport:
    def __init__(
        self,
        *,
        api_key: str | None,
        from_email: str,
        timeout_seconds: float = 10.0,
        clinic_name: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.timeout_seconds = timeout_seconds
        self.clinic_name = clinic_name
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.Client | None = None
    ) -> ResendEmailTransport:
        return cls(
            api_key=settings.resend_key,
            from_email=str(settings.resend_from_email),
            timeout_seconds=settings.transport_timeout_seconds,
            clinic_name=settings.clinic_name,
            client=client,
        )

    def _post(self, client: httpx.Client, payload: dict[str, Any]) -> httpx.Response:
        return client.post(
            RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout_seconds,
        )

    def send(self, to: str, subject: str, body: str) -> dict[str, Any]:
        if not self.api_key:
            raise EmailDeliveryError("Email provider not configured (RESEND_API_KEY/RESEND_TOKEN)")

        payload = {
            "from": self.from_email,
            "to": to,
            "subject": subject,
            "text": body,
            "html": render_email_html(body, self.clinic_name),
        }
        try:
            if self._client is not None:
                response = self._post(self._client, payload)
            else:
                with httpx.Client() as client:
                    response = self._post(client, payload)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Resend request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("message") or response.text
            except ValueError:
                detail = response.text
            raise EmailDeliveryError(f"Resend error {response.status_code}: {detail or 'unknown error'}")

        logger.info("Email handed to Resend (status=%s)", response.status_code)
        try:
            return response.json()
        except ValueError:
            return {}
