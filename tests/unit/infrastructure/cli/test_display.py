import pytest
from unittest.mock import MagicMock

from rich.box import HEAVY
from rich.panel import Panel
from rich.table import Table

from chirpkit.domain.events.api_events import (
    ApiCallSucceeded,
    RateLimitHit,
    RequestThrottled,
    RetryScheduled,
    UploadProcessingPolled,
    UploadSegmentSent,
)
from chirpkit.domain.models.media import UploadedMedia
from chirpkit.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    return ConsoleDisplay(console=mock_console)


def test_display_output(console_display: ConsoleDisplay, mock_console: MagicMock):
    """Test that display_output prints the raw body inside a panel."""
    console_display.display_output('{"data": [1]}', title="GET /2/tweets")

    mock_console.print.assert_called_once()
    panel = mock_console.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert panel.renderable.plain == '{"data": [1]}'
    assert "GET /2/tweets" in panel.title


def test_display_output_does_not_interpret_markup(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output("[bold]not markup[/bold]")
    panel = mock_console.print.call_args.args[0]
    assert panel.renderable.plain == "[bold]not markup[/bold]"


def test_display_error(console_display: ConsoleDisplay, mock_console: MagicMock):
    """Test that display_error prints a heavy red panel."""
    console_display.display_error("Something went wrong")

    panel = mock_console.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert panel.box is HEAVY
    assert panel.border_style == "red"
    assert panel.renderable.plain == "Something went wrong"


def test_display_info(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_info("Uploading clip.mp4")
    text = mock_console.print.call_args.args[0]
    assert text.plain == "Uploading clip.mp4"
    assert text.style == "blue"


def test_display_media(console_display: ConsoleDisplay, mock_console: MagicMock):
    media = UploadedMedia.from_json({
        "media_id_string": "123",
        "size": 2048,
        "media_key": "3_123",
        "image": {"image_type": "image/png", "w": 10, "h": 20},
        "processing_info": {"state": "succeeded"},
    })

    console_display.display_media(media)

    table = mock_console.print.call_args.args[0]
    assert isinstance(table, Table)
    assert table.row_count == 5


def test_on_event_segment(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.on_event(UploadSegmentSent(media_id="1", segment_index=2, bytes_sent=10, total_bytes=20))
    assert "segment 2" in mock_console.print.call_args.args[0]
    assert "10/20 bytes" in mock_console.print.call_args.args[0]


def test_on_event_processing(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.on_event(UploadProcessingPolled(media_id="1", state="in_progress", progress_percent=40, check_after_secs=5))
    assert "in_progress 40%" in mock_console.print.call_args.args[0]


def test_on_event_throttle(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.on_event(RequestThrottled(url="u", wait_ms=750))
    assert "750ms" in mock_console.print.call_args.args[0]


def test_on_event_rate_limit_is_a_warning(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.on_event(RateLimitHit(url="u", reset="100", remaining="0", limit="300"))
    console_display.on_event(RetryScheduled(url="u", attempt_number=2, delay_seconds=5))

    first, second = [c.args[0] for c in mock_console.print.call_args_list]
    assert first.style == second.style == "yellow"
    assert "Rate limited on u" in first.plain
    assert "Retrying in 5s (attempt 2)" in second.plain


def test_on_event_ignores_other_events(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.on_event(ApiCallSucceeded(method="GET", url="u", status_code=200, latency_ms=1.0))
    mock_console.print.assert_not_called()
