"""Email providers - outbound transactional mail."""

from packages.notifications.providers.email.interface import EmailProviderInterface
from packages.notifications.providers.email.factory import get_email_provider

__all__ = [
    "EmailProviderInterface",
    "get_email_provider",
]
