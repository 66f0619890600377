"""Core Application Layer: orchestrates multi-step API protocols.

Drives the RequestDispatcher through use cases such as chunked uploads.
"""
