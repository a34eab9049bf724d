from typing import Optional
from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """User context passed through authentication dependencies"""

    user_id: str  # Identity-provider user id
    user_key: str  # Derived internal key, see packages.auth.identity
    email: Optional[str] = None

    class Config:
        from_attributes = True
