"""
Derivation of internal user keys from identity-provider user ids.
"""

import hashlib

from common.core.constants import IDENTITY_NAMESPACE


def derive_user_key(external_user_id: str) -> str:
    """
    Map an identity-provider user id to a stable UUID-shaped key.

    The md5 digest of the namespaced id is laid out as a version-4 UUID
    string: the version nibble is forced to 4 and the variant nibble to
    8-b. The key is an addressing convenience, not a credential; callers
    must have authenticated the id before deriving it.

    Args:
        external_user_id: Identity-provider user id (e.g. "user_2abc...")

    Returns:
        36 character lowercase key, identical for identical input
    """
    digest = hashlib.md5(
        f"{IDENTITY_NAMESPACE}{external_user_id}".encode("utf-8")
    ).hexdigest()

    variant = format((int(digest[16], 16) & 0x3) | 0x8, "x")

    return "-".join(
        [
            digest[0:8],
            digest[8:12],
            "4" + digest[13:16],
            variant + digest[17:20],
            digest[20:32],
        ]
    )
