"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (HTTP, configuration,
console) and holds the signing and resilience machinery.
"""
