"""
Email sender - SendGrid delivery for the send_email workflow action.
Plain-text bodies only; workflow authors write the body inline.
"""
import asyncio
import logging

from src.config import get_settings

logger = logging.getLogger(__name__)


def _mask(address: str) -> str:
    return address[:20] + "***"


async def send_email(to_email: str, subject: str, body: str) -> dict:
    """
    Send one email via SendGrid.

    Returns: {"message_id": str|None, "status": "sent"|"error", "error": str|None}
    """
    settings = get_settings()
    if not settings.sendgrid_api_key:
        logger.error("No SendGrid API key configured for workflow email")
        return {"message_id": None, "status": "error", "error": "SendGrid not configured"}

    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, Email, To, Content

        message = Mail(
            from_email=Email(settings.sendgrid_from_email, settings.sendgrid_from_name),
            to_emails=To(to_email),
            subject=subject,
        )
        message.content = [Content("text/plain", body or " ")]

        sg = SendGridAPIClient(api_key=settings.sendgrid_api_key)
        # Offload synchronous SendGrid SDK call to thread pool
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: sg.send(message))
        message_id = response.headers.get("X-Message-Id", "")

        logger.info("Workflow email sent: to=%s subject=%s", _mask(to_email), subject[:40])
        return {"message_id": message_id, "status": "sent", "error": None}

    except Exception as e:
        logger.error("Workflow email failed: to=%s error=%s", _mask(to_email), str(e))
        return {"message_id": None, "status": "error", "error": str(e)}
