"""
Email Service for TrainCRM
==========================
Handles outbound mail:
- Certificate issued notices
- Enrollment and waitlist notices
- Campaign sends (bulk, personalised)

Supports both SMTP and SendGrid.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, List, Dict, Any
import asyncio

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from traincrm.core.config import settings
from traincrm.core.logging_config import logger


class EmailService:
    """Async email service using SMTP or SendGrid"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.sendgrid_api_key = settings.SENDGRID_API_KEY
        self.use_sendgrid = settings.USE_SENDGRID and bool(self.sendgrid_api_key)

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        if self.use_sendgrid:
            return bool(self.sendgrid_api_key)
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning(f"[Email] Email service not configured, skipping send to {to_email}")
            return False

        if self.use_sendgrid:
            return await self._send_via_sendgrid(to_email, subject, html_content, text_content)
        return await self._send_via_smtp(to_email, subject, html_content, text_content)

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SendGrid API"""
        try:
            message = Mail(
                from_email=Email(self.from_email, self.from_name),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            if text_content:
                message.add_content(Content("text/plain", text_content))

            sg = SendGridAPIClient(self.sendgrid_api_key)
            # SendGrid client is synchronous
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, sg.send, message)

            if response.status_code in [200, 201, 202]:
                logger.info(f"[Email/SendGrid] Sent to {to_email}: {subject}")
                return True

            logger.error(f"[Email/SendGrid] Failed with status {response.status_code}: {response.body}")
            return False

        except Exception as e:
            logger.error(f"[Email/SendGrid] Failed to send email to {to_email}: {e}")
            return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SMTP"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )

            logger.info(f"[Email/SMTP] Sent to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    async def send_bulk_email(
        self,
        recipients: List[Dict[str, str]],  # [{"email": "...", "name": "..."}]
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        throttle_seconds: float = 0.1,
    ) -> Dict[str, Any]:
        """
        Send one personalised email per recipient.

        ``{{name}}`` in the bodies is replaced with the recipient's name.

        Returns:
            Dict with 'success_count', 'failed_count', 'sent_emails', 'failed_emails'
        """
        sent_emails: List[str] = []
        failed_emails: List[str] = []

        for recipient in recipients:
            email = recipient.get("email")
            if not email:
                continue
            name = recipient.get("name") or "there"

            personalized_html = html_content.replace("{{name}}", name)
            personalized_text = text_content.replace("{{name}}", name) if text_content else None

            if await self.send_email(email, subject, personalized_html, personalized_text):
                sent_emails.append(email)
            else:
                failed_emails.append(email)

            if throttle_seconds:
                await asyncio.sleep(throttle_seconds)

        logger.info(f"[Email] Bulk send complete: {len(sent_emails)} sent, {len(failed_emails)} failed")

        return {
            "success_count": len(sent_emails),
            "failed_count": len(failed_emails),
            "sent_emails": sent_emails,
            "failed_emails": failed_emails,
        }

    async def send_certificate_issued_email(
        self,
        to_email: str,
        recipient_name: str,
        course_name: str,
        verification_code: str,
    ) -> bool:
        """Notify a learner that their certificate is ready"""
        verify_url = settings.get_verification_url(verification_code)
        subject = f"Your {course_name} certificate"

        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; color: #1f2937;">
            <h2>Congratulations, {recipient_name}!</h2>
            <p>Your certificate for <strong>{course_name}</strong> has been issued.</p>
            <p>Verification code: <strong>{verification_code}</strong></p>
            <p>Anyone can confirm it at <a href="{verify_url}">{verify_url}</a>.</p>
            <p>{settings.CERTIFICATE_ISSUER_NAME}</p>
        </body>
        </html>
        """
        text_content = (
            f"Congratulations, {recipient_name}!\n\n"
            f"Your certificate for {course_name} has been issued.\n"
            f"Verification code: {verification_code}\n"
            f"Verify at: {verify_url}\n"
        )
        return await self.send_email(to_email, subject, html_content, text_content)


email_service = EmailService()
