"""EmailProvider protocol — services depend on this, not the concrete implementation.

Every method reports delivery as a bool; providers log and swallow transport
failures so a lost email never rolls back the state change that sent it.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        text_body: str,
        html_body: str,
    ) -> bool: ...

    async def send_registration_otp(
        self, email: str, user_name: Optional[str], otp_code: str, *, resend: bool = False
    ) -> bool: ...

    async def send_password_reset_otp(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool: ...
