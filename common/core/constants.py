from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


# Namespace prepended to identity-provider ids before hashing into a user key
IDENTITY_NAMESPACE = "clerk-user-id-"

# Where clients are sent when a paid plan is required
UPGRADE_REDIRECT_PATH = "/pricing"
