"""External platform integrations used by billing."""
