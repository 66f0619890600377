import json

import pytest
import requests
from typer.testing import CliRunner
from unittest.mock import MagicMock
from typing import Dict, List, Optional

from chirpkit.domain.exceptions import OperationCancelled
from chirpkit.domain.models.request import OAuthCredentials
from chirpkit.infrastructure.config.settings import clear_test_config
from chirpkit.infrastructure.http.dispatcher import RequestDispatcher
from chirpkit.infrastructure.resilience.api_retry import RetryPolicy
from chirpkit.infrastructure.resilience.rate_limiter import RateLimitState
from chirpkit.infrastructure.resilience.sleeper import Sleeper

NOW = 1_700_000_000.0


class RecordingSleeper(Sleeper):
    """Sleeper that records requested durations instead of waiting."""

    def __init__(self):
        super().__init__()
        self.sleeps: List[float] = []

    def sleep(self, seconds: float) -> None:
        if self.cancelled:
            raise OperationCancelled("cancelled")
        self.sleeps.append(seconds)


class FakeClock:
    """Manually advanced millisecond clock for RateLimitState."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


def make_http_response(status_code: int = 200, text: str = "{}", headers: Optional[Dict[str, str]] = None):
    """Builds a stand-in for requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    return response


@pytest.fixture
def credentials() -> OAuthCredentials:
    return OAuthCredentials(
        api_key="xvz1evFS4wEEPTGEFPHBog",
        api_secret_key="kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw",
        access_token="370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb",
        access_token_secret="LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE",
    )


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_session():
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_http_response()
    return session


@pytest.fixture
def dispatcher(credentials, mock_session, sleeper, fake_clock) -> RequestDispatcher:
    """Dispatcher wired to a mocked session, a recording sleeper and fixed clocks."""
    return RequestDispatcher(
        credentials=credentials,
        session=mock_session,
        rate_limit_state=RateLimitState(clock=fake_clock),
        retry_policy=RetryPolicy(),
        sleeper=sleeper,
        clock=lambda: NOW,
    )


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch):
    """Dummy credentials for every test and no leaked test overrides."""
    monkeypatch.setenv("CHIRPKIT_API_KEY", "DUMMY_TEST_KEY")
    monkeypatch.setenv("CHIRPKIT_API_SECRET_KEY", "DUMMY_TEST_SECRET")
    monkeypatch.setenv("CHIRPKIT_ACCESS_TOKEN", "DUMMY_TEST_TOKEN")
    monkeypatch.setenv("CHIRPKIT_ACCESS_TOKEN_SECRET", "DUMMY_TEST_TOKEN_SECRET")
    yield
    clear_test_config()


MEDIA_ID = "710511363345354753"


class FakeUploadServer:
    """Routes session.request calls by upload command and records what was sent.

    `status_responses` are served in order; the last one repeats once exhausted.
    """

    def __init__(self, finalize_response=None, status_responses=(), init_status=200, append_status=200):
        self.init_status = init_status
        self.init_response = None
        self.append_status = append_status
        self.finalize_response = finalize_response or {"media_id_string": MEDIA_ID, "size": 0}
        self.status_responses = list(status_responses)
        self.commands: List[str] = []
        self.init_body: Dict[str, str] = {}
        self.segments: List[tuple] = []

    def __call__(self, method, url, **kwargs):
        files = kwargs.get("files")
        if files:
            parts = {name: content for name, (_, content, _) in files}
            command = parts["command"].decode() if "command" in parts else "UPLOAD"
        else:
            fields = dict(kwargs.get("data") or kwargs.get("params") or [])
            command = fields.get("command")
        self.commands.append(command)
        return getattr(self, f"_on_{command.lower()}")(kwargs)

    def _on_init(self, kwargs):
        self.init_body = dict(kwargs["data"])
        if self.init_status != 200:
            return make_http_response(self.init_status, '{"errors":[{"message":"Bad request"}]}')
        if self.init_response is not None:
            return make_http_response(202, json.dumps(self.init_response))
        return make_http_response(202, json.dumps({
            "media_id": int(MEDIA_ID),
            "media_id_string": MEDIA_ID,
            "media_key": f"7_{MEDIA_ID}",
            "expires_after_secs": 86400,
        }))

    def _on_append(self, kwargs):
        parts = {name: content for name, (_, content, _) in kwargs["files"]}
        self.segments.append((int(parts["segment_index"].decode()), len(parts["media"])))
        return make_http_response(self.append_status, "" if self.append_status < 300 else "server error")

    def _on_finalize(self, kwargs):
        return make_http_response(200, json.dumps(self.finalize_response))

    def _on_status(self, kwargs):
        body = self.status_responses.pop(0) if len(self.status_responses) > 1 else self.status_responses[0]
        return make_http_response(200, json.dumps(body))

    def _on_upload(self, kwargs):
        return make_http_response(200, json.dumps({
            "media_id_string": MEDIA_ID,
            "size": len(kwargs["files"][0][1][1]),
            "image": {"image_type": "image/png", "w": 640, "h": 480},
        }))

    @property
    def status_calls(self) -> int:
        return self.commands.count("STATUS")


def processing(state: str, progress: Optional[int] = None, check_after: Optional[int] = 1) -> Dict:
    """Builds a FINALIZE/STATUS body carrying processing_info."""
    info = {"state": state}
    if progress is not None:
        info["progress_percent"] = progress
    if check_after is not None:
        info["check_after_secs"] = check_after
    return {"media_id_string": MEDIA_ID, "size": 0, "processing_info": info}
