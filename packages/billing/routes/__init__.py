"""Billing API routes."""

from packages.billing.routes import credits, subscription, webhooks, plans

__all__ = ["credits", "subscription", "webhooks", "plans"]
