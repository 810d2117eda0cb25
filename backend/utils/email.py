import smtplib
from html import escape
from email.message import EmailMessage
from typing import Optional
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None, from_name: Optional[str] = None) -> EmailMessage:
    from_name = from_name or settings.SMTP_FROM_NAME
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{settings.SMTP_FROM_EMAIL}>" if from_name and settings.SMTP_FROM_EMAIL else (settings.SMTP_FROM_EMAIL or "no-reply@example.com")
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None, from_name: Optional[str] = None) -> bool:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        logger.warning("SMTP not configured; skipping email send")
        return False
    try:
        msg = _build_message(subject, to_email, html_body, text_body, from_name)
        timeout = settings.SMTP_TIMEOUT or 15
        debug = 1 if settings.SMTP_DEBUG else 0
        # SSL (SMTPS) or STARTTLS
        if settings.SMTP_USE_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        logger.info(f"Sent email to {to_email} with subject '{subject}'")
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email to {to_email}: {exc}")
        return False


def _otp_html(heading: str, name: str, intro: str, otp_code: str, expire_minutes: int, footer: str, from_name: str, color: str) -> str:
    return f"""
    <div style='font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;'>
      <h2 style='color: #333;'>{heading}</h2>
      <p>Hello <strong>{escape(name)}</strong>,</p>
      <p>{intro}</p>
      <div style='background-color: #f4f4f4; padding: 15px; text-align: center; font-size: 32px; font-weight: bold; letter-spacing: 5px; color: {color};'>
        {otp_code}
      </div>
      <p style='color: #666; margin-top: 20px;'>This OTP will expire in <strong>{expire_minutes} minutes</strong>.</p>
      <p style='color: #666;'>{footer}</p>
      <hr style='margin-top: 30px; border: none; border-top: 1px solid #eee;'>
      <p style='color: #999; font-size: 12px;'>Best regards,<br>{from_name} Team</p>
    </div>
    """


def send_verification_otp_email(to_email: str, otp_code: str, name: str = "User", expire_minutes: int = 10, from_name: Optional[str] = None) -> bool:
    from_name = from_name or settings.SMTP_FROM_NAME
    subject = "Email Verification - OTP"
    text = (
        f"Hello {name},\n\n"
        f"Your OTP for verification is: {otp_code}\n\n"
        f"This OTP will expire in {expire_minutes} minutes.\n\n"
        "If you did not request this, please ignore this email.\n\n"
        f"Best regards,\n{from_name} Team\n"
    )
    html = _otp_html(
        "Email Verification", name, "Your OTP for verification is:", otp_code, expire_minutes,
        "If you did not request this, please ignore this email.", from_name, "#007bff",
    )
    return send_email(subject, to_email, html, text, from_name)


def send_password_reset_email(to_email: str, otp_code: str, name: str = "User", expire_minutes: int = 10, from_name: Optional[str] = None) -> bool:
    from_name = from_name or settings.SMTP_FROM_NAME
    subject = "Password Reset Request - OTP"
    text = (
        f"Hello {name},\n\n"
        f"You requested to reset your password. Your OTP is: {otp_code}\n\n"
        f"This OTP will expire in {expire_minutes} minutes.\n\n"
        "If you did not request this, please ignore this email and your password will remain unchanged.\n\n"
        f"Best regards,\n{from_name} Team\n"
    )
    html = _otp_html(
        "Password Reset Request", name, "You requested to reset your password. Your OTP is:", otp_code, expire_minutes,
        "If you did not request this, please ignore this email and your password will remain unchanged.", from_name, "#dc3545",
    )
    return send_email(subject, to_email, html, text, from_name)
