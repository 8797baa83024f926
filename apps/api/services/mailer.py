"""Transactional email over an HTTP mail API."""

import html
import logging

import httpx

from core.config import settings

logger = logging.getLogger(__name__)


class Mailer:
    """Sends account emails. Delivery is best-effort: failures are logged and reported as False."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self.client = client or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self.client.aclose()

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not settings.mail_api_key or not settings.mail_from:
            logger.warning(f"Mail API not configured, skipping email '{subject}' to {to}")
            return False

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": settings.mail_from, "name": "Matcha"},
            "subject": subject,
            "content": [{"type": "text/html", "value": body}],
        }
        try:
            response = await self.client.post(
                settings.mail_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {settings.mail_api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email '{subject}' to {to}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    async def send_verification(self, to: str, first_name: str, token: str) -> bool:
        url = f"{settings.public_base_url}/verify-email/{token}"
        if not settings.is_production:
            logger.info(f"Verification link for {to}: {url}")
        body = (
            f"<p>Hello {html.escape(first_name)},</p>"
            f"<p>Confirm your Matcha account by opening this link within 24 hours:</p>"
            f'<p><a href="{url}">{url}</a></p>'
        )
        return await self.send(to, "Verify your Matcha account", body)

    async def send_password_reset(self, to: str, first_name: str, token: str) -> bool:
        url = f"{settings.public_base_url}/reset-password/{token}"
        if not settings.is_production:
            logger.info(f"Password reset link for {to}: {url}")
        body = (
            f"<p>Hello {html.escape(first_name)},</p>"
            f"<p>Reset your Matcha password with this link. It expires in one hour:</p>"
            f'<p><a href="{url}">{url}</a></p>'
        )
        return await self.send(to, "Reset your Matcha password", body)
