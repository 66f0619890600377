import logging
from typing import Any

from rich.box import HEAVY, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chirpkit.domain.events.api_events import (
    DomainEvent,
    RateLimitHit,
    RequestThrottled,
    RetryScheduled,
    UploadProcessingPolled,
    UploadSegmentSent,
)
from chirpkit.domain.interfaces.user_interface import UserInterface
from chirpkit.domain.models.media import UploadedMedia

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Prints a response body inside a panel.

        Args:
            output: Raw text to show; not interpreted as markup.
            **kwargs: `title` overrides the panel title.
        """
        title = kwargs.get("title", "Response")
        self.console.print(Panel(Text(str(output)), title=f"[bold]{title}[/bold]", title_align="left", box=SIMPLE))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(Text(info_message, style="blue"))

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        self.console.print(Text(warning_message, style="yellow"))

    def display_media(self, media: UploadedMedia) -> None:
        """Renders the uploaded media as a two-column table."""
        table = Table(title="Uploaded media", show_header=False, box=SIMPLE)
        table.add_column("Field", style="bold cyan")
        table.add_column("Value")
        table.add_row("media_id", str(media.media_id))
        table.add_row("size", str(media.size))
        if media.image_type:
            table.add_row("image", f"{media.image_width}x{media.image_height} ({media.image_type})")
        if media.processing_state:
            table.add_row("state", media.processing_state.value)
        if media.media_key:
            table.add_row("media_key", media.media_key)
        self.console.print(table)

    def on_event(self, event: DomainEvent) -> None:
        """Shows upload progress and waits as they happen."""
        if isinstance(event, UploadSegmentSent):
            self.console.print(
                f"[dim]segment {event.segment_index}[/dim] {event.bytes_sent}/{event.total_bytes} bytes"
            )
        elif isinstance(event, UploadProcessingPolled) and event.state:
            progress = f" {event.progress_percent}%" if event.progress_percent is not None else ""
            self.console.print(f"[dim]processing[/dim] {event.state}{progress}")
        elif isinstance(event, RequestThrottled):
            self.console.print(f"[dim]throttled {event.wait_ms}ms[/dim]")
        elif isinstance(event, RateLimitHit):
            self.display_warning(f"Rate limited on {event.url} (reset: {event.reset}, remaining: {event.remaining})")
        elif isinstance(event, RetryScheduled):
            self.display_warning(f"Retrying in {event.delay_seconds}s (attempt {event.attempt_number})")
