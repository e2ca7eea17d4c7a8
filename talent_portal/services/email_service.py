"""
Email Service - transactional email through the Resend REST API.

Without RESEND_API_KEY the client runs in mock mode: the message is logged
and reported as sent, which keeps local development and tests offline.
"""

import logging
from typing import Optional, Dict, Any

import requests

from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import ExternalServiceException
from talent_portal.services.email_templates import render
from talent_portal.services.mongo_service import EmailLogService

settings = get_settings()
logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15


def _mask_email(email: str) -> str:
    """'ana@mail.com' -> '***@mail.com' for logs."""
    if "@" not in (email or ""):
        return "***"
    return "***@" + email.rsplit("@", 1)[1]


class EmailClient:
    """Thin wrapper over one email provider."""

    def __init__(self, api_key: str = None, api_url: str = None, sender: str = None):
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.api_url = api_url or settings.email_api_url
        self.sender = sender or settings.email_from

    @property
    def is_mock(self) -> bool:
        return not self.api_key

    def send(self, to: str, subject: str, html: str, sender: str = None,
             template: str = "custom") -> Dict[str, Any]:
        """
        Send one message.

        Returns {"success": True, "id": ...} or {"success": True, "mock": True}.
        Raises ExternalServiceException when the provider refuses the message.
        """
        if self.is_mock:
            logger.info(f"[mock email] to={_mask_email(to)} subject={subject!r}")
            EmailLogService().record(to, subject, template, "mock")
            return {"success": True, "mock": True}

        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                },
                json={
                    "from": sender or self.sender,
                    "to": [to],
                    "subject": subject,
                    "html": html
                },
                timeout=REQUEST_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            EmailLogService().record(to, subject, template, "failed")
            raise ExternalServiceException(f"Email provider unreachable: {e}")

        if response.status_code >= 400:
            EmailLogService().record(to, subject, template, "failed")
            logger.error(f"Email provider returned {response.status_code}: {response.text[:200]}")
            raise ExternalServiceException("Email provider rejected the message")

        provider_id = response.json().get("id")
        EmailLogService().record(to, subject, template, "sent", provider_id)
        logger.info(f"Email '{template}' sent to {_mask_email(to)}")
        return {"success": True, "id": provider_id}

    def send_template(self, to: str, template: str, sender: str = None, **values) -> Dict[str, Any]:
        subject, html = render(template, **values)
        return self.send(to, subject, html, sender=sender, template=template)


# Singleton instance
_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the email client (singleton pattern)"""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client


def send_quietly(to: str, template: str, sender: str = None, **values) -> bool:
    """
    Send where a failed email must not fail the request (portal flows).
    Failures are logged; returns whether the send succeeded.
    """
    try:
        get_email_client().send_template(to, template, sender=sender, **values)
        return True
    except ExternalServiceException as e:
        logger.error(f"Email '{template}' to {_mask_email(to)} failed: {e}")
        return False
