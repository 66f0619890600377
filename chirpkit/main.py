"""Main entry point for the chirpkit command line.

Sets up the Typer CLI application, performs dependency injection (Composition Root)
and exposes commands for chunked uploads, raw requests and signature debugging.
"""

import logging
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import typer

# --- Setup Logging Early ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Domain Layer ---
from chirpkit.domain.exceptions import ChirpkitError
from chirpkit.domain.models.common import HttpMethod
from chirpkit.domain.models.media import MediaCategory
from chirpkit.domain.models.request import ApiRequest
# --- Core Layer ---
from chirpkit.core.services.upload_service import MediaUploadService
# --- Infrastructure Layer ---
from chirpkit.infrastructure.config.settings import (
    get_config,
    get_credentials,
    get_http_timeout,
    get_retry_policy,
    get_upload_url,
    load_configuration,
)
from chirpkit.infrastructure.cli.display import ConsoleDisplay
from chirpkit.infrastructure.http.dispatcher import RequestDispatcher
from chirpkit.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up the services a command needs.

    This acts as the Composition Root.

    Raises:
        ConfigurationError: If credentials are missing.
    """
    load_configuration()
    setup_logging(
        log_level=resolve_log_level(get_config('logging.level', 'WARNING')),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        log_file=get_config('logging.file'),
    )

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['dispatcher'] = RequestDispatcher(
        credentials=get_credentials(),
        retry_policy=get_retry_policy(),
        timeout=get_http_timeout(),
        event_listener=dependencies['ui'].on_event,
    )
    dependencies['upload_service'] = MediaUploadService(
        dispatcher=dependencies['dispatcher'],
        event_listener=dependencies['ui'].on_event,
    )
    logger.debug("Dependencies initialized.")
    return dependencies


def parse_params(values: Optional[List[str]]) -> Dict[str, str]:
    """Turns repeated `key=value` options into a mapping."""
    params: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{item}'")
        params[key] = value
    return params


# --- Typer App Definition ---
app = typer.Typer(
    name="chirpkit",
    help="chirpkit: OAuth1-signed, rate-limit aware Twitter API client with chunked media upload.",
    add_completion=False,
)

ParamOption = Annotated[
    Optional[List[str]],
    typer.Option("--param", "-p", help="Query parameter as key=value. Repeatable."),
]


def _fail(ui: Any, error: Exception) -> None:
    logger.debug(f"Command failed: {error!r}")
    ui.display_error(str(error))
    raise typer.Exit(code=1)


@app.command()
def upload(
    file: Annotated[Path, typer.Argument(exists=True, file_okay=True, dir_okay=False,
                                         readable=True, resolve_path=True,
                                         help="Media file to upload.")],
    category: Annotated[MediaCategory, typer.Option("--category", "-c", help="Media category.")] = MediaCategory.AMPLIFY_VIDEO,
    url: Annotated[Optional[str], typer.Option("--url", help="Upload endpoint. Defaults to upload.url.")] = None,
):
    """Upload a media file with the chunked INIT/APPEND/FINALIZE protocol."""
    ui = ConsoleDisplay()
    try:
        dependencies = create_dependencies()
        ui = dependencies['ui']
        service: MediaUploadService = dependencies['upload_service']
        ui.display_info(f"Uploading {file.name} as {category.value}...")
        media = service.upload_file(url or get_upload_url(), file, category)
    except (ChirpkitError, OSError) as e:
        _fail(ui, e)
    ui.display_media(media)


@app.command()
def request(
    url: Annotated[str, typer.Argument(help="Absolute API URL.")],
    method: Annotated[HttpMethod, typer.Option("--method", "-X", help="HTTP method.")] = HttpMethod.GET,
    param: ParamOption = None,
    sign: Annotated[bool, typer.Option("--sign/--no-sign", help="Sign with OAuth 1.0a.")] = True,
):
    """Send a single request and print the raw response body."""
    ui = ConsoleDisplay()
    try:
        dependencies = create_dependencies()
        ui = dependencies['ui']
        dispatcher: RequestDispatcher = dependencies['dispatcher']
        body = dispatcher.execute_raw(ApiRequest.build(method, url, parse_params(param)), sign)
    except ChirpkitError as e:
        _fail(ui, e)
    ui.display_output(body, title=f"{method.value} {url}")


@app.command()
def sign(
    method: Annotated[HttpMethod, typer.Argument(help="HTTP method.")],
    url: Annotated[str, typer.Argument(help="Absolute API URL.")],
    param: ParamOption = None,
):
    """Print the OAuth Authorization header a request would carry."""
    ui = ConsoleDisplay()
    try:
        dependencies = create_dependencies()
        ui = dependencies['ui']
        signer = dependencies['dispatcher'].signer
        header = signer.authorization_header(ApiRequest.build(method, url, parse_params(param)))
    except ChirpkitError as e:
        _fail(ui, e)
    ui.display_output(header, title="Authorization")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function called by the console script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
