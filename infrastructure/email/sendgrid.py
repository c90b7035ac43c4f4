"""SendGrid implementation of EmailProvider.

Mail goes through SendGrid's v3 REST API over the shared HttpClient; bodies
are rendered from the Jinja2 templates under templates/emails.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class SendGridEmailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "AI Study Assistant",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        if not self._settings.sendgrid_api_key:
            log.error("email_send_failed", reason="api_key_not_configured")
            return False

        recipient = {"email": to_email}
        if to_name:
            recipient["name"] = to_name
        payload = {
            "personalizations": [{"to": [recipient]}],
            "from": {
                "email": self._settings.sendgrid_verified_email,
                "name": self._settings.sendgrid_from_name,
            },
            "subject": subject,
            # text/plain must precede text/html
            "content": [
                {"type": "text/plain", "value": text_body},
                {"type": "text/html", "value": html_body},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self._settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(
                _SENDGRID_SEND_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 202):
                log.info("email_sent_success", to_email=to_email, subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=to_email,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_verification_email(
        self, email: str, user_name: Optional[str], verify_url: str
    ) -> bool:
        subject = "Verify Your Email"
        html_body = self._jinja.get_template("verification.html").render(
            user_name=user_name, verify_url=verify_url, app_name=self._app_name
        )
        text_body = (
            f"Hi{f' {user_name}' if user_name else ''},\n\n"
            f"Please verify your email by opening the link below:\n"
            f"{verify_url}\n\n"
            f"This link will expire in 1 hour."
        )
        return await self._send(email, user_name, subject, html_body, text_body)

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_url: str
    ) -> bool:
        subject = "Password Reset Request"
        html_body = self._jinja.get_template("password_reset.html").render(
            user_name=user_name, reset_url=reset_url, app_name=self._app_name
        )
        text_body = (
            f"Hi{f' {user_name}' if user_name else ''},\n\n"
            f"Reset your password here:\n{reset_url}\n\n"
            f"This link will expire in 1 hour. "
            f"If you did not request this, ignore this email."
        )
        return await self._send(email, user_name, subject, html_body, text_body)

    async def send_two_factor_code(
        self, email: str, user_name: Optional[str], code: str, resent: bool = False
    ) -> bool:
        subject = "Your 2FA Code (Resent)" if resent else "Your 2FA Code"
        html_body = self._jinja.get_template("two_factor_code.html").render(
            user_name=user_name, code=code, app_name=self._app_name
        )
        text_body = f"Your login code is {code}. It expires in 5 minutes."
        return await self._send(email, user_name, subject, html_body, text_body)
