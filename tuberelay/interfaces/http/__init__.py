"""Flask HTTP layer."""
