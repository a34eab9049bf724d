"""
Factory for getting CMS provider instance.
"""

from packages.content.providers.cms.interface import CMSProviderInterface
from packages.content.providers.cms.strapi_provider import StrapiCMSProvider


def get_cms_provider() -> CMSProviderInterface:
    """Get the configured CMS provider (Strapi)."""
    return StrapiCMSProvider()
