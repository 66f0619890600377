"""chirpkit: resilient, OAuth1-signed client core for the Twitter REST API.

Provides request signing, a rate-limit-aware dispatcher and the chunked
media upload protocol.
"""

__version__ = "0.3.0"
