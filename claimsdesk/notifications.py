"""
Claims Desk - Client Notifications

Signature request and completion messages, by email (SMTP) or SMS (Brevo).
Without credentials both channels run in development mode: the message is
logged and a mock message ID returned.
"""

import logging
import uuid
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Tuple

import aiosmtplib
import httpx

from claimsdesk.config import settings
from claimsdesk.timestamps import format_aest

logger = logging.getLogger(__name__)


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: Optional[str] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Send an email.

    Returns:
        Tuple of (success: bool, message_id: Optional[str])
    """
    # Development mode - log instead of sending
    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        mock_message_id = f"dev-{uuid.uuid4().hex[:16]}"
        logger.info(
            f"EMAIL (development mode) to={to_email} subject={subject!r} message_id={mock_message_id}\n"
            f"{text_content or html_content}"
        )
        return True, mock_message_id

    try:
        message_id = f"smtp-{uuid.uuid4().hex}"
        domain = settings.SMTP_FROM_EMAIL.split("@")[-1]

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        message["To"] = to_email
        message["Message-ID"] = f"<{message_id}@{domain}>"

        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        await aiosmtplib.send(
            message,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            start_tls=True,
        )
        return True, message_id

    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False, None


async def send_sms(to_number: str, message: str) -> Tuple[bool, Optional[str]]:
    """
    Send a transactional SMS through Brevo.

    Returns:
        Tuple of (success: bool, message_id: Optional[str])
    """
    if not settings.BREVO_API_KEY:
        mock_message_id = f"dev-sms-{uuid.uuid4().hex[:16]}"
        logger.info(f"SMS (development mode) to={to_number} message_id={mock_message_id}\n{message}")
        return True, mock_message_id

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                f"{settings.BREVO_API_URL}/transactionalSMS/sms",
                headers={
                    "Accept": "application/json",
                    "api-key": settings.BREVO_API_KEY,
                },
                json={
                    "type": "transactional",
                    "content": message,
                    "recipient": to_number,
                    "sender": settings.SMS_SENDER,
                },
            )
    except httpx.HTTPError as e:
        logger.error(f"Failed to send SMS to {to_number}: {e}")
        return False, None

    if response.status_code not in (200, 201):
        logger.error(f"Brevo SMS error {response.status_code}: {response.text}")
        return False, None

    data = response.json()
    return True, str(data.get("messageId") or data.get("reference") or "")


# =============================================================================
# NOTIFICATION TEMPLATES
# =============================================================================

def get_signature_request_email(
    client_name: str,
    document_name: str,
    signature_link: str,
    case_number: str,
    expires_at: datetime,
) -> tuple[str, str, str]:
    """
    Generate the email asking a client to review and sign a document.

    Returns: (subject, html_content, text_content)
    """
    subject = f"Digital Signature Required - Case {case_number}"
    expires_text = format_aest(expires_at)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background-color: #1e40af; color: white; padding: 20px; text-align: center; }}
            .content {{ padding: 20px; background-color: #f9fafb; }}
            .button {{ display: inline-block; background-color: #1e40af; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin: 20px 0; }}
            .warning {{ background-color: #fef3c7; border: 1px solid #f59e0b; padding: 10px; border-radius: 4px; margin: 15px 0; }}
            .footer {{ padding: 20px; text-align: center; font-size: 12px; color: #666; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1 style="margin: 0;">Digital Signature Required</h1>
            </div>
            <div class="content">
                <p>Dear {client_name},</p>
                <p>Your <strong>{document_name}</strong> for case <strong>{case_number}</strong> is ready.
                We have pre-filled it with the details we hold. Please review the information and sign.</p>
                <p style="text-align: center;">
                    <a href="{signature_link}" class="button">Review &amp; Sign Document</a>
                </p>
                <div class="warning">
                    <strong>Important:</strong> This link expires on {expires_text}.
                </div>
                <p>If you have any questions, reply to this email or call us.</p>
            </div>
            <div class="footer">
                <p>{settings.SMTP_FROM_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """

    text_content = f"""
DIGITAL SIGNATURE REQUIRED
==========================

Dear {client_name},

Your {document_name} for case {case_number} is ready with pre-filled information.
Please review and sign:

{signature_link}

This link expires on {expires_text}.

---
{settings.SMTP_FROM_NAME}
    """

    return subject, html_content, text_content


def get_signature_request_sms(
    client_name: str,
    document_name: str,
    signature_link: str,
    case_number: str,
) -> str:
    """Generate the SMS asking a client to review and sign a document."""
    hours = settings.SIGNATURE_TOKEN_EXPIRE_HOURS
    return (
        f"Hi {client_name}, your {document_name} for case {case_number} is ready with "
        f"pre-filled info. Please review & sign: {signature_link} (expires in {hours}hrs) "
        f"- {settings.SMS_SENDER}"
    )


def get_completion_email(
    client_name: str,
    document_name: str,
    case_reference: str,
) -> tuple[str, str, str]:
    """
    Generate the email confirming a document was signed.

    Returns: (subject, html_content, text_content)
    """
    subject = f"Document Signed Successfully - Case {case_reference}"

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background-color: #059669; color: white; padding: 20px; text-align: center; }}
            .content {{ padding: 20px; background-color: #f9fafb; }}
            .success {{ background-color: #d1fae5; border: 1px solid #059669; padding: 10px; border-radius: 4px; margin: 15px 0; }}
            .footer {{ padding: 20px; text-align: center; font-size: 12px; color: #666; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1 style="margin: 0;">Document Signed Successfully</h1>
            </div>
            <div class="content">
                <p>Dear {client_name},</p>
                <div class="success">
                    Your <strong>{document_name}</strong> for case <strong>{case_reference}</strong>
                    has been signed and received.
                </div>
                <p>No further action is needed. We will be in touch about the next steps for your claim.</p>
            </div>
            <div class="footer">
                <p>{settings.SMTP_FROM_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """

    text_content = f"""
DOCUMENT SIGNED SUCCESSFULLY
============================

Dear {client_name},

Your {document_name} for case {case_reference} has been signed and received.
No further action is needed.

---
{settings.SMTP_FROM_NAME}
    """

    return subject, html_content, text_content
