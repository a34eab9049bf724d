"""CMS providers - headless content sources."""

from packages.content.providers.cms.interface import CMSProviderInterface
from packages.content.providers.cms.factory import get_cms_provider

__all__ = [
    "CMSProviderInterface",
    "get_cms_provider",
]
