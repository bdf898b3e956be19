"""ZeptoMail implementation of EmailProvider.

- async httpx via HttpClient, bounded by the client timeout
- settings injected through EmailSettings
- Jinja2 templates under templates/emails render the HTML bodies
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        otp_ttl_minutes: int = 10,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._otp_ttl_minutes = otp_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        text_body: str,
        html_body: str,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("email_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
            "textbody": text_body,
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email, subject=subject)
            return True
        log.error(
            "email_send_failed",
            to_email=to_email,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    def _greeting(self, user_name: Optional[str]) -> str:
        return f"Hello {user_name}," if user_name else "Hello,"

    async def send_registration_otp(
        self, email: str, user_name: Optional[str], otp_code: str, *, resend: bool = False
    ) -> bool:
        subject = (
            "Your New OTP for Account Verification"
            if resend
            else "Your OTP for Account Verification"
        )
        html_body = self._jinja.get_template("registration_otp.html").render(
            otp_code=otp_code,
            user_name=user_name,
            resend=resend,
            ttl_minutes=self._otp_ttl_minutes,
        )
        text_body = (
            f"{self._greeting(user_name)}\n"
            f"Your {'new ' if resend else ''}OTP for account verification is: {otp_code}\n"
            f"Please enter this OTP to verify within {self._otp_ttl_minutes} minutes."
        )
        return await self.send(email, user_name, subject, text_body, html_body)

    async def send_password_reset_otp(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        subject = "Your OTP for Password Reset"
        html_body = self._jinja.get_template("password_reset.html").render(
            otp_code=otp_code,
            user_name=user_name,
            ttl_minutes=self._otp_ttl_minutes,
        )
        text_body = (
            f"{self._greeting(user_name)}\n"
            f"Your OTP for password reset is: {otp_code}\n"
            f"Please use this OTP within {self._otp_ttl_minutes} minutes."
        )
        return await self.send(email, user_name, subject, text_body, html_body)
