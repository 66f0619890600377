"""Application service for media uploads.

Implements the chunked upload protocol on top of the RequestDispatcher:

    INIT -> APPEND (segment 0..n-1, in order) -> FINALIZE -> STATUS (poll)

Any failure abandons the whole session; nothing is resumed.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from chirpkit.domain.events.api_events import DomainEvent, EventListener, UploadProcessingPolled, UploadSegmentSent
from chirpkit.domain.exceptions import (
    ChirpkitError,
    PayloadTooLarge,
    RequestError,
    UploadAppendFailed,
    UploadInitFailed,
    UploadProcessingFailed,
    UploadStalled,
)
from chirpkit.domain.models.common import HttpMethod, MediaId
from chirpkit.domain.models.media import CHUNK_SIZE, MB, MediaCategory, ProcessingState, UploadedMedia, UploadSession
from chirpkit.domain.models.request import ApiRequest, MultipartPart
from chirpkit.infrastructure.http.dispatcher import RequestDispatcher
from chirpkit.infrastructure.resilience.sleeper import Sleeper

logger = logging.getLogger(__name__)

CHUNKED_INIT = "INIT"
CHUNKED_APPEND = "APPEND"
CHUNKED_FINALIZE = "FINALIZE"
CHUNKED_STATUS = "STATUS"

MAX_STALLED_POLLS = 20
READ_BUFFER_SIZE = 32768
OCTET_STREAM = "application/octet-stream"

Payload = Union[bytes, bytearray, BinaryIO]


def iter_segments(data: bytes, segment_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yields consecutive slices of `data`; the last one may be shorter."""
    for offset in range(0, len(data), segment_size):
        yield data[offset:offset + segment_size]


def check_payload_size(size: int, category: MediaCategory) -> None:
    """Raises PayloadTooLarge if `size` exceeds the ceiling of `category`."""
    if size > category.max_size:
        message = f"{category.value} file can't be longer than: {category.max_size // MB} MBytes"
        logger.error(message)
        raise PayloadTooLarge(message, size=size, limit=category.max_size, category=category.value)


class MediaUploadService:
    """Uploads media, chunked or in one shot, and waits for server-side processing."""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        sleeper: Optional[Sleeper] = None,
        max_stalled_polls: int = MAX_STALLED_POLLS,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the MediaUploadService.

        Args:
            dispatcher: Issues every protocol step.
            sleeper: Used between status polls. Defaults to the dispatcher's.
            max_stalled_polls: Consecutive polls without progress before giving up.
            event_listener: Optional callback for upload progress events.
        """
        self.dispatcher = dispatcher
        self.sleeper = sleeper or dispatcher.sleeper
        self.max_stalled_polls = max_stalled_polls
        self._event_listener = event_listener

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_listener:
            self._event_listener(event)

    # --- Simple upload ---

    def upload_media(self, url: str, file_name: str, data: bytes) -> UploadedMedia:
        """Uploads a small payload in a single multipart request."""
        request = ApiRequest(
            method=HttpMethod.POST,
            url=url,
            multipart=(MultipartPart("media", bytes(data), filename=file_name, content_type=OCTET_STREAM),),
        )
        return self.dispatcher.execute(request, True, UploadedMedia.from_json)

    # --- Chunked upload ---

    def upload_file(self, url: str, path: Union[str, Path], media_category: Union[str, MediaCategory]) -> UploadedMedia:
        """Chunked upload of a file on disk. The size is checked before reading it."""
        path = Path(path)
        category = MediaCategory(media_category)
        check_payload_size(path.stat().st_size, category)
        return self.upload_chunked(url, path.name, path.read_bytes(), category)

    def upload_chunked(
        self,
        url: str,
        file_name: str,
        media: Payload,
        media_category: Union[str, MediaCategory],
    ) -> UploadedMedia:
        """Uploads `media` with the INIT/APPEND/FINALIZE protocol.

        Args:
            url: The media upload endpoint.
            file_name: Name reported for each appended segment.
            media: The payload, as bytes or a binary stream.
            media_category: Category deciding the size ceiling and media type.

        Returns:
            The final UploadedMedia once processing succeeded (or was not needed).

        Raises:
            PayloadTooLarge: Before any request, if the payload is over the ceiling.
            UploadInitFailed, UploadAppendFailed, UploadStalled, UploadProcessingFailed:
                If the session had to be abandoned.
            RequestError: If FINALIZE or STATUS could not be completed or decoded.
            OperationCancelled: If a polling wait was cancelled.
        """
        category = MediaCategory(media_category)
        data = self._read_payload(media, category)
        check_payload_size(len(data), category)

        session = self._init(url, len(data), category)
        try:
            for segment in iter_segments(data, session.segment_size):
                self._append(url, file_name, session, segment)
            return self._finalize(url, session)
        except ChirpkitError as e:
            logger.error(f"Chunked upload of media {session.media_id} aborted: {e}")
            raise

    def _read_payload(self, media: Payload, category: MediaCategory) -> bytes:
        if isinstance(media, (bytes, bytearray)):
            return bytes(media)
        # Stop reading as soon as the ceiling is crossed
        buffer = bytearray()
        while True:
            chunk = media.read(READ_BUFFER_SIZE)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > category.max_size:
                check_payload_size(len(buffer), category)

    def _init(self, url: str, total_bytes: int, category: MediaCategory) -> UploadSession:
        body = [("command", CHUNKED_INIT)]
        if category.media_type:
            body.append(("media_type", category.media_type))
        body.append(("media_category", category.value))
        body.append(("total_bytes", str(total_bytes)))
        request = ApiRequest(method=HttpMethod.POST, url=url, body_params=tuple(body))

        try:
            media = self.dispatcher.execute(request, True, UploadedMedia.from_json)
        except RequestError as e:
            logger.error(f"INIT failed for a {total_bytes} bytes {category.value} upload: {e}")
            raise UploadInitFailed(f"Chunked upload INIT failed: {e}") from e

        logger.info(
            f"mediaId : {media.media_id}, mediaKey : {media.media_key}, "
            f"expiresAfterSecs : {media.expires_after_secs}, size : {media.size}"
        )
        return UploadSession(media_id=media.media_id, total_bytes=total_bytes, media_category=category)

    def _append(self, url: str, file_name: str, session: UploadSession, segment: bytes) -> None:
        index = session.record_segment()
        bytes_sent = min(session.segments_sent * session.segment_size, session.total_bytes)
        logger.info(f"Chunked append, segment index: {index} bytes: {bytes_sent}/{session.total_bytes}")

        request = ApiRequest(
            method=HttpMethod.POST,
            url=url,
            multipart=(
                MultipartPart("command", CHUNKED_APPEND.encode("utf-8")),
                MultipartPart("media_id", session.media_id.encode("utf-8")),
                MultipartPart("segment_index", str(index).encode("utf-8")),
                MultipartPart("media", segment, filename=file_name, content_type=OCTET_STREAM),
            ),
        )
        try:
            response = self.dispatcher.send(request, True)
        except RequestError as e:
            raise UploadAppendFailed(
                f"APPEND of segment {index} failed: {e}", media_id=session.media_id, segment_index=index,
            ) from e
        if not response.ok:
            raise UploadAppendFailed(
                f"APPEND of segment {index} rejected with HTTP {response.status_code}: {response.text}",
                media_id=session.media_id,
                segment_index=index,
            )
        self._dispatch_event(UploadSegmentSent(
            media_id=session.media_id, segment_index=index, bytes_sent=bytes_sent, total_bytes=session.total_bytes,
        ))

    def _finalize(self, url: str, session: UploadSession) -> UploadedMedia:
        """Sends FINALIZE, then polls STATUS until a terminal state."""
        request = ApiRequest(
            method=HttpMethod.POST,
            url=url,
            body_params=(("command", CHUNKED_FINALIZE), ("media_id", session.media_id)),
        )
        media = self.dispatcher.execute(request, True, UploadedMedia.from_json)
        logger.info(f"Finalize response: {media}")

        stalled_polls = 0
        last_progress: Optional[int] = None
        while True:
            session.apply(media)
            self._dispatch_event(UploadProcessingPolled(
                media_id=session.media_id,
                state=media.processing_state.value if media.processing_state else None,
                progress_percent=media.progress_percent,
                check_after_secs=media.check_after_secs,
            ))

            # No processing_info means the media needs no server-side processing
            if media.processing_state is None or session.processing_state is ProcessingState.SUCCEEDED:
                logger.info(f"Media {session.media_id} is ready")
                return media
            if session.processing_state is ProcessingState.FAILED:
                logger.error("Failed to finalize the chunked upload.")
                raise UploadProcessingFailed(
                    f"Processing of media {session.media_id} failed", media_id=session.media_id,
                )

            progress = session.progress_percent or 0
            if last_progress is not None and progress <= last_progress:
                stalled_polls += 1
            else:
                stalled_polls = 0
            if stalled_polls >= self.max_stalled_polls:
                message = (
                    f"Failed to finalize the chunked upload, progress has stopped at {progress}% "
                    f"for {stalled_polls} polls."
                )
                logger.error(message)
                raise UploadStalled(message, media_id=session.media_id, stalled_polls=stalled_polls)
            last_progress = progress

            wait_seconds = max(session.check_after_secs or 0, 1)
            logger.info(f"Chunked finalize, wait for: {wait_seconds} sec")
            self.sleeper.sleep(wait_seconds)
            media = self._status(url, session.media_id)

    def _status(self, url: str, media_id: MediaId) -> UploadedMedia:
        request = ApiRequest(
            method=HttpMethod.GET,
            url=url,
            query_params=(("command", CHUNKED_STATUS), ("media_id", media_id)),
        )
        media = self.dispatcher.execute(request, True, UploadedMedia.from_json)
        logger.info(f"Status response: {media}")
        return media
