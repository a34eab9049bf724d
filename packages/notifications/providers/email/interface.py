"""
Interface for email providers.
"""

from abc import ABC, abstractmethod

from packages.notifications.models.email import EmailMessage


class EmailProviderInterface(ABC):
    """Abstract interface for transactional email providers."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str:
        """
        Send a single email.

        Returns:
            Provider message ID

        Raises:
            UpstreamError: If the provider rejects the message or is unreachable
        """
        pass
