"""
Factory for getting email provider instance.
"""

from packages.notifications.providers.email.interface import EmailProviderInterface
from packages.notifications.providers.email.resend_email import ResendEmailProvider


def get_email_provider() -> EmailProviderInterface:
    """Get the configured email provider (Resend)."""
    return ResendEmailProvider()
