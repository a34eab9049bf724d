"""
Billing package - subscriptions, credits and Stripe events.

This package integrates with:
- Stripe: checkout, subscription lifecycle webhooks and renewals

Credit balances are reconciled locally by CreditService.
"""
