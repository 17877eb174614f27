# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending email in AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourdomain.com
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#
# Without credentials the service logs what it would have sent and
# reports False. A failed send never fails the auth flow that asked
# for it.
#
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from useradmin.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Email Templates
# =============================================================================

TEMPLATES = {
    "welcome": {
        "subject": "Verify your account",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Welcome, {name}!</h1>
            <p>Your account has been created. Please verify your email to activate it:</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{verify_url}" style="background: #2F6FEB; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Verify Email
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {verify_url}</p>
        </body>
        </html>
        """,
        "text": """
Welcome, {name}!

Your account has been created. Verify your email to activate it:
{verify_url}
        """,
    },

    "password_reset": {
        "subject": "Reset your password",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Reset Your Password</h1>
            <p>We received a request to reset your password. Click the button below to choose a new one:</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_url}" style="background: #2F6FEB; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Reset Password
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {reset_url}</p>
            <p style="color: #666; font-size: 14px;">This link expires in {expires_minutes} minutes.</p>
            <p style="color: #666; font-size: 14px;">If you didn't request this, you can safely ignore this email.</p>
        </body>
        </html>
        """,
        "text": """
Reset Your Password

We received a request to reset your password. Visit this link to choose a new one:
{reset_url}

This link expires in {expires_minutes} minutes.

If you didn't request this, you can safely ignore this email.
        """,
    },

    "temporary_password": {
        "subject": "Your new account",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Hello, {name}</h1>
            <p>An administrator created an account for you. Sign in with this temporary password and change it right away:</p>
            <p style="text-align: center; margin: 30px 0; font-family: monospace; font-size: 18px;">{password}</p>
            <p style="color: #666; font-size: 14px;">Sign in at: {app_url}</p>
        </body>
        </html>
        """,
        "text": """
Hello, {name}

An administrator created an account for you. Sign in with this temporary
password and change it right away:

{password}

Sign in at: {app_url}
        """,
    },

    "email_verified": {
        "subject": "Email verified",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">You're all set!</h1>
            <p>Your email has been verified and your account is active. You can now sign in.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{app_url}" style="background: #2F6FEB; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Sign In
                </a>
            </p>
        </body>
        </html>
        """,
        "text": """
You're all set!

Your email has been verified and your account is active.

Sign in at: {app_url}
        """,
    },
}


# =============================================================================
# Email Service
# =============================================================================

class EmailService:
    """Send account emails via AWS SES."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = None

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return self.settings.use_aws and bool(self.settings.aws_ses_from_email)

    async def send(
        self,
        to: str,
        template: str,
        data: dict[str, Any] | None = None,
        subject_override: str | None = None,
    ) -> bool:
        """
        Send an email using a template.

        Args:
            to: Recipient email address
            template: Template name (e.g., "welcome", "password_reset")
            data: Template variables to substitute
            subject_override: Override the template's subject

        Returns:
            True if sent successfully, False otherwise
        """
        if template not in TEMPLATES:
            logger.error(f"Unknown email template: {template}")
            return False

        tpl = TEMPLATES[template]
        data = data or {}

        if not self.is_configured:
            logger.warning(f"Email not configured - would send '{template}' to {to}")
            # Links carry one-time tokens; only print them outside production
            if not self.settings.is_production:
                try:
                    logger.info(f"Email content: {tpl['text'].format(**data)}")
                except KeyError as e:
                    logger.error(f"Missing template variable for '{template}': {e}")
            return False

        try:
            subject = subject_override or tpl["subject"]
            html_body = tpl["html"].format(**data)
            text_body = tpl["text"].format(**data)

            # boto3 is blocking
            response = await asyncio.to_thread(
                self.client.send_email,
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                        "Text": {"Data": text_body, "Charset": "UTF-8"},
                    },
                },
            )

            logger.info(f"Email sent to {to}: {template} (MessageId: {response['MessageId']})")
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False
        except KeyError as e:
            logger.error(f"Missing template variable for '{template}': {e}")
            return False

    async def send_welcome(self, email: str, name: str, verify_token: str) -> bool:
        """Send welcome email with verification link."""
        verify_url = f"{self.settings.app_url}/auth/verify-email?token={verify_token}"
        return await self.send(
            to=email,
            template="welcome",
            data={"name": name, "verify_url": verify_url},
        )

    async def send_password_reset(self, email: str, reset_token: str) -> bool:
        """Send password reset email."""
        reset_url = f"{self.settings.app_url}/reset-password?token={reset_token}"
        return await self.send(
            to=email,
            template="password_reset",
            data={
                "reset_url": reset_url,
                "expires_minutes": self.settings.password_reset_expire_minutes,
            },
        )

    async def send_temporary_password(self, email: str, name: str, password: str) -> bool:
        """Send an administrator-created account its first password."""
        return await self.send(
            to=email,
            template="temporary_password",
            data={"name": name, "password": password, "app_url": self.settings.app_url},
        )

    async def send_email_verified(self, email: str) -> bool:
        """Send confirmation that email was verified."""
        return await self.send(
            to=email,
            template="email_verified",
            data={"app_url": self.settings.app_url},
        )
