"""Content API routes."""

from packages.content.routes import blog

__all__ = ["blog"]
