# app/core/email.py
"""
Email service using Resend for sending transactional emails.
"""
import html
import logging

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


def init_resend():
    """Initialize Resend with API key."""
    resend.api_key = settings.RESEND_API_KEY


def build_verification_email_html(
    name: str, attendee_id: str, verification_link: str
) -> str:
    name = html.escape(name)
    attendee_id = html.escape(attendee_id)
    link = html.escape(verification_link, quote=True)

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #1e3a8a; color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
            .content {{ background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px; }}
            .id-box {{ background: white; border: 2px dashed #1e3a8a; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px; }}
            .attendee-id {{ font-size: 24px; font-weight: bold; color: #1e3a8a; letter-spacing: 2px; }}
            .button {{ display: inline-block; background: #1e3a8a; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; }}
            .footer {{ text-align: center; color: #888; font-size: 12px; margin-top: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>Verify Your Registration</h1>
            </div>
            <div class="content">
                <p>Hi {name},</p>
                <p>Thanks for registering. Please confirm your email address to complete your registration.</p>

                <div class="id-box">
                    <p style="margin: 0 0 10px 0; color: #666;">Your Attendee ID</p>
                    <div class="attendee-id">{attendee_id}</div>
                    <p style="margin: 10px 0 0 0; font-size: 12px; color: #888;">Keep this ID, you will need it to join the Q&amp;A</p>
                </div>

                <p style="text-align: center;">
                    <a class="button" href="{link}">Verify Registration</a>
                </p>

                <p>If the button doesn't work, copy and paste this link into your browser:<br>{link}</p>
            </div>
            <div class="footer">
                <p>If you didn't register for this event, please ignore this email.</p>
            </div>
        </div>
    </body>
    </html>
    """


def send_verification_email(
    to_email: str,
    name: str,
    attendee_id: str,
    verification_link: str,
) -> dict:
    """
    Send the registration verification email.

    Args:
        to_email: Recipient email address
        name: Name of the recipient
        attendee_id: The attendee code issued at registration
        verification_link: Link that confirms the email address

    Returns:
        {"success": True, "id": ...} or {"success": False, "error": ...}
    """
    init_resend()

    params = {
        "from": settings.RESEND_FROM_ADDRESS,
        "to": [to_email],
        "subject": "Verify Your Event Registration",
        "html": build_verification_email_html(name, attendee_id, verification_link),
    }

    try:
        response = resend.Emails.send(params)
        logger.info(f"Verification email sent to {to_email} for attendee {attendee_id}")
        return {"success": True, "id": response.get("id")}
    except Exception as e:
        logger.error(f"Failed to send verification email to {to_email}: {e}")
        return {"success": False, "error": str(e)}
