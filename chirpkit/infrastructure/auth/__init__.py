"""OAuth 1.0a request signing."""
