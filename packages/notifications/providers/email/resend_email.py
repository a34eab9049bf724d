"""Resend email provider implementation."""

from typing import Optional
import httpx

from common.core.config import settings
from common.core.exceptions import UpstreamError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.notifications.models.email import EmailMessage
from packages.notifications.providers.email.interface import EmailProviderInterface

logger = get_logger(__name__)


class ResendEmailProvider(EmailProviderInterface):
    """Sends mail through the Resend REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.base_url = settings.resend_api_url.rstrip("/")
        self.sender = f"{settings.mail_from_name} <{settings.mail_from_email}>"
        self.timeout = httpx.Timeout(settings.resend_timeout_seconds)
        self.transport = transport

    @trace_span
    async def send(self, message: EmailMessage) -> str:
        if not self.api_key:
            raise UpstreamError("RESEND_API_KEY is not configured")

        body = {
            "from": self.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            body["text"] = message.text
        if message.tags:
            body["tags"] = [{"name": "category", "value": tag} for tag in message.tags]

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Resend rejected email: {e.response.status_code}",
                extra={
                    "status_code": e.response.status_code,
                    "subject": message.subject,
                    "response": e.response.text,
                },
            )
            raise UpstreamError(
                f"Resend returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Resend request failed: {str(e)}",
                extra={"subject": message.subject, "error": str(e)},
            )
            raise UpstreamError(f"Resend request failed: {e}") from e

        message_id = data.get("id", "")
        logger.info(
            "Email sent",
            extra={"message_id": message_id, "subject": message.subject},
        )
        return message_id
