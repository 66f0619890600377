"""Interface for presenting results to the user.

Defines the contract for displaying information, errors, warnings,
upload results and progress, allowing different UI implementations.
"""

import abc
from typing import Any

from chirpkit.domain.events.api_events import DomainEvent
from chirpkit.domain.models.media import UploadedMedia


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output (e.g. a raw response body) to the user.

        Args:
            output: The text to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_media(self, media: UploadedMedia) -> None:
        """Displays the outcome of a media upload.

        Args:
            media: The final UploadedMedia snapshot.
        """
        pass

    def on_event(self, event: DomainEvent) -> None:
        """Receives domain events (upload progress, throttling). Ignored by default."""
        pass
