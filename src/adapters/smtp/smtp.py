"""
SMTP email sender adapter - Implements NotificationGateway protocol.

Delivers verification codes as a plain-text + HTML email over SMTP.
Delivery errors are raised as GatewayFailure; the issuer decides
whether they matter (it logs and absorbs them).
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.domain.exceptions import GatewayFailure

logger = logging.getLogger(__name__)

SUBJECT = "Your SwiftAid verification code"


class SmtpEmailSender:
    """Implements NotificationGateway protocol via smtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        from_email: str,
        from_name: str = "SwiftAid",
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout_seconds: float = 15.0,
        expire_minutes: int = 10,
    ) -> None:
        self._host = host
        self._port = port
        self._from_email = from_email
        self._from_name = from_name
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout_seconds
        self._expire_minutes = expire_minutes

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Send the code to the email address.

        Raises:
            GatewayFailure: If the SMTP exchange failed or the sender is not configured
        """
        if not self._host or not self._from_email:
            raise GatewayFailure("SMTP sender is not configured")

        message = self._build_message(email, code)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._user and self._password:
                    server.login(self._user, self._password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise GatewayFailure(f"SMTP delivery to {email} failed") from e

        logger.info("Verification email sent to %s", email)

    def _build_message(self, email: str, code: str) -> MIMEMultipart:
        expiry = "1 minute" if self._expire_minutes == 1 else f"{self._expire_minutes} minutes"
        text = (
            "Use the code below to verify your email address.\n\n"
            f"Your verification code is: {code}\n\n"
            f"The code expires in {expiry}.\n\n"
            "If you didn't request this, you can ignore this email."
        )
        html = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
  <p style="font-size: 16px; color: #1a1a1a;">Use the code below to verify your email address.</p>
  <p style="margin: 24px 0; font-size: 28px; font-weight: 600; letter-spacing: 0.2em;">{code}</p>
  <p style="font-size: 14px; color: #737373;">The code expires in {expiry}.</p>
  <p style="font-size: 14px; color: #737373;">If you didn't request this, you can ignore this email.</p>
</body>
</html>
"""

        message = MIMEMultipart("alternative")
        message["Subject"] = SUBJECT
        message["From"] = f"{self._from_name} <{self._from_email}>"
        message["To"] = email
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message
