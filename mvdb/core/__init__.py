"""Core utilities: errors, auth, rate limiting."""
