"""API Resilience Implementations.

Contains the endpoint self-throttle, the 429 backoff policy and the
cancellable sleeper shared by every suspension point.
Bounded Context: API Resilience
"""
