"""Email notification adapter."""

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import structlog

from clibridge.core.auth.types import UserAccount

logger = structlog.get_logger()


@dataclass
class EmailConfig:
    """Email configuration."""

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "noreply@example.com"
    from_name: str = "clibridge"
    use_tls: bool = True
    app_url: str = "http://localhost:8000"


class EmailNotifier:
    """Delivers account emails via SMTP."""

    def __init__(self, config: EmailConfig):
        """Initialize the email notifier.

        Args:
            config: Email configuration settings.
        """
        self.config = config

    def send(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        """Send an email.

        Returns True if the email was sent successfully.
        Note: This is synchronous - use in a thread pool for async contexts.
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
            msg["To"] = ", ".join(to_emails)

            if body_text:
                msg.attach(MIMEText(body_text, "plain"))
            msg.attach(MIMEText(body_html, "html"))

            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as server:
                if self.config.use_tls:
                    server.starttls()

                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)

                server.sendmail(
                    self.config.from_email,
                    to_emails,
                    msg.as_string(),
                )

            logger.info("email_sent", to=to_emails, subject=subject)
            return True

        except OSError as e:  # smtplib.SMTPException is an OSError
            logger.error(
                "email_error",
                to=to_emails,
                subject=subject,
                error=str(e),
            )
            return False

    def render_welcome(self, user: UserAccount) -> tuple[str, str, str]:
        """Subject, HTML body and text body of the welcome email."""
        name = user.first_name or user.email
        subject = "Welcome! Your CLI is connected"

        body_html = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Welcome, {escape(name)}!</h2>
            <p>Your account was created when you signed in from the command line.
            A personal workspace has been set up for you.</p>
            <p>Next steps:</p>
            <ul>
                <li>Create an API key with <code>api-keys create</code></li>
                <li>Connect an application with <code>applications register</code></li>
            </ul>
            <p><a href="{escape(self.config.app_url)}">Open the dashboard</a></p>
            <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
            <p style="color: #666; font-size: 12px;">
                This email was sent by {escape(self.config.from_name)}. Please do not reply.
            </p>
        </body>
        </html>
        """

        body_text = f"""
Welcome, {name}!

Your account was created when you signed in from the command line.
A personal workspace has been set up for you.

Next steps:
- Create an API key with `api-keys create`
- Connect an application with `applications register`

Dashboard: {self.config.app_url}

---
This email was sent by {self.config.from_name}. Please do not reply.
        """
        return subject, body_html, body_text

    async def send_welcome(self, user: UserAccount) -> bool:
        """Send the welcome email without blocking the event loop."""
        subject, body_html, body_text = self.render_welcome(user)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.send, [user.email], subject, body_html, body_text
        )
