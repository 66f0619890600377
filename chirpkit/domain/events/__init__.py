"""Domain events emitted by the dispatcher and the upload service."""
