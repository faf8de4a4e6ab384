import logging
import re
from typing import List, Optional, Union

import requests

from grocery.config import settings

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


def is_valid_email(email):
    if isinstance(email, list):
        return all(is_valid_email(e) for e in email)

    if not email:
        return False

    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


class EmailClient:
    """Sends transactional email through Brevo.

    Never raises: a failed send is logged and reported as ``False`` so
    callers on the request path are not affected by mail outages.
    """

    def __init__(self, api_key: str, sender_email: str, sender_name: str, timeout: int = 10):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout

    def send(self, to: Union[str, List[str]], subject: str, html: str) -> bool:
        recipients = to if isinstance(to, list) else [to]
        valid_emails = [e for e in recipients if is_valid_email(e)]

        if not valid_emails:
            logger.warning(f"No valid emails found: {to}")
            return False

        if not self.api_key:
            logger.info(f"Email disabled, skipping '{subject}' to {valid_emails}")
            return False

        payload = {
            "sender": {
                "email": self.sender_email,
                "name": self.sender_name,
            },
            "to": [{"email": e} for e in valid_emails],
            "subject": subject,
            "htmlContent": html,
        }

        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                BREVO_API_URL,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )

            if response.status_code >= 400:
                logger.error(
                    f"Brevo email failed ({response.status_code}): {response.text}"
                )
                return False

            logger.info(f"Brevo email sent to {valid_emails}")
            return True

        except requests.RequestException:
            logger.exception("Brevo email exception")
            return False


def get_email_client() -> EmailClient:
    return EmailClient(
        api_key=settings.brevo_api_key,
        sender_email=settings.mail_from,
        sender_name=settings.store_name,
    )


def admin_recipients() -> Optional[str]:
    return settings.admin_email
