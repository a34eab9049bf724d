from typing import Optional, List
from enum import Enum
from pydantic import BaseModel


class SSOProvider(str, Enum):
    """Supported SSO providers"""

    CLERK = "clerk"


class SSOUserInfo(BaseModel):
    """Standardized user info from SSO providers"""

    provider_user_id: str  # Provider's unique user ID
    email: Optional[str] = None
    full_name: Optional[str] = None


class ClerkSessionClaims(BaseModel):
    """Claims of a Clerk session token that we rely on"""

    sub: str  # Subject (user ID)
    sid: Optional[str] = None  # Session ID
    azp: Optional[str] = None  # Authorized party (origin of the frontend)
    iss: str
    exp: int
    iat: Optional[int] = None
    nbf: Optional[int] = None
    email: Optional[str] = None  # Present only with a custom session template
    org_id: Optional[str] = None


class ClerkEmailAddress(BaseModel):
    id: str
    email_address: str


class ClerkUserRecord(BaseModel):
    """Subset of the Clerk Backend API user object"""

    id: str
    primary_email_address_id: Optional[str] = None
    email_addresses: List[ClerkEmailAddress] = []
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def primary_email(self) -> Optional[str]:
        for address in self.email_addresses:
            if address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None
