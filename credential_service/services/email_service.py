"""Verification email delivery using SendGrid."""

import logging
from urllib.parse import urlencode

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

logger = logging.getLogger(__name__)


class EmailService:
    """Sends verification links via SendGrid. Every failure is soft."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        app_url: str,
        verification_path: str = "/api/auth/verify",
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._from_name = from_name
        self._app_url = app_url.rstrip("/")
        self._verification_path = verification_path

    def build_verification_url(self, token: str) -> str:
        """Link the recipient follows to verify their address."""
        return f"{self._app_url}{self._verification_path}?{urlencode({'token': token})}"

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send email via SendGrid. Returns True if successful."""
        if not self._api_key:
            logger.warning("SendGrid API key not configured, skipping email send")
            return False

        message = Mail(
            from_email=(self._from_address, self._from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )

        try:
            sg = SendGridAPIClient(self._api_key)
            response = sg.send(message)
            logger.info(f"Email sent to {to_email}, status: {response.status_code}")
            return response.status_code in (200, 201, 202)
        except Exception:
            logger.exception(f"Failed to send email to {to_email}")
            return False

    def send_verification_email(self, email: str, token: str) -> bool:
        """Send email verification link."""
        verify_url = self.build_verification_url(token)
        html = f"""
        <h2>Verify Your Email</h2>
        <p>Click the link below to verify your email address:</p>
        <p><a href="{verify_url}">{verify_url}</a></p>
        <p>If you didn't create an account, you can ignore this email.</p>
        """
        return self._send_email(email, f"Verify Your Email - {self._from_name}", html)
