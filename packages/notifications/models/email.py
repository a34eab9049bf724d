from typing import List, Optional
from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """An outbound transactional email."""

    to: List[str]
    subject: str
    html: str
    text: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class EmailDeliveryResult(BaseModel):
    """
    Outcome of a best-effort send.

    Reported separately from the operation that triggered the email so a
    failed send never changes that operation's result.
    """

    delivered: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
