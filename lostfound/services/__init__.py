"""Business operations; each call runs in the caller's request-scoped session."""
