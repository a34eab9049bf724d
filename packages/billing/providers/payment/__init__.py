"""Payment provider abstraction and its Stripe implementation."""
