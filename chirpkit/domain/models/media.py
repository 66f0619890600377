"""Domain models for media uploads.

Includes the media categories with their size ceilings, the immutable
UploadedMedia snapshot parsed from upload responses, and the mutable
UploadSession tracked while a chunked upload is in flight.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .common import MediaId

logger = logging.getLogger(__name__)

MB = 1024 * 1024
# Fixed segment size for every chunked upload session
CHUNK_SIZE = 2 * MB


class MediaCategory(str, Enum):
    """Upload categories accepted by the media endpoint."""
    AMPLIFY_VIDEO = "amplify_video"
    TWEET_VIDEO = "tweet_video"
    TWEET_GIF = "tweet_gif"
    TWEET_IMAGE = "tweet_image"

    @property
    def max_size(self) -> int:
        return _MAX_SIZES[self]

    @property
    def media_type(self) -> Optional[str]:
        return _MEDIA_TYPES.get(self)


_MAX_SIZES = {
    MediaCategory.AMPLIFY_VIDEO: 512 * MB,
    MediaCategory.TWEET_VIDEO: 512 * MB,
    MediaCategory.TWEET_GIF: 15 * MB,
    MediaCategory.TWEET_IMAGE: 5 * MB,
}

_MEDIA_TYPES = {
    MediaCategory.AMPLIFY_VIDEO: "video/mp4",
    MediaCategory.TWEET_VIDEO: "video/mp4",
    MediaCategory.TWEET_GIF: "image/gif",
}


class ProcessingState(str, Enum):
    """Server-side processing states, in the only order they may advance."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.SUCCEEDED, ProcessingState.FAILED)


_STATE_RANK = {
    ProcessingState.PENDING: 0,
    ProcessingState.IN_PROGRESS: 1,
    ProcessingState.SUCCEEDED: 2,
    ProcessingState.FAILED: 2,
}


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


@dataclass(frozen=True)
class UploadedMedia:
    """Result of the media upload endpoint (INIT, FINALIZE, STATUS or simple upload).

    Equality only considers media_id, size and the image descriptor;
    processing fields change while polling and are ignored.
    """
    media_id: MediaId
    size: int = 0
    image_width: int = 0
    image_height: int = 0
    image_type: Optional[str] = None
    processing_state: Optional[ProcessingState] = field(default=None, compare=False)
    check_after_secs: Optional[int] = field(default=None, compare=False)
    progress_percent: Optional[int] = field(default=None, compare=False)
    media_key: Optional[str] = field(default=None, compare=False)
    expires_after_secs: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "UploadedMedia":
        """Parses a decoded JSON object.

        Raises:
            KeyError: If `media_id` is missing.
            ValueError: If the media identifier is null or empty.
            TypeError, ValueError: If a field has the wrong shape.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        media_id = data.get("media_id_string") or data["media_id"]
        if media_id is None or str(media_id) == "":
            raise ValueError("Response carries no media identifier")

        image = data.get("image") or {}
        processing = data.get("processing_info") or {}
        if not isinstance(image, dict) or not isinstance(processing, dict):
            raise TypeError("Expected JSON objects for image and processing_info")
        state = processing.get("state")

        return cls(
            media_id=MediaId(str(media_id)),
            size=int(data.get("size") or 0),
            image_width=int(image.get("w") or 0),
            image_height=int(image.get("h") or 0),
            image_type=image.get("image_type"),
            processing_state=ProcessingState(state) if state is not None else None,
            check_after_secs=_optional_int(processing.get("check_after_secs")),
            progress_percent=_optional_int(processing.get("progress_percent")),
            media_key=data.get("media_key"),
            expires_after_secs=_optional_int(data.get("expires_after_secs")),
        )


@dataclass
class UploadSession:
    """State of one chunked upload, from INIT until a terminal state."""
    media_id: MediaId
    total_bytes: int
    media_category: MediaCategory
    segment_size: int = CHUNK_SIZE
    segments_sent: int = 0
    processing_state: Optional[ProcessingState] = None
    check_after_secs: Optional[int] = None
    progress_percent: Optional[int] = None

    @property
    def expected_segments(self) -> int:
        return math.ceil(self.total_bytes / self.segment_size)

    @property
    def is_finished(self) -> bool:
        return self.processing_state is not None and self.processing_state.is_terminal

    def record_segment(self) -> int:
        """Counts one appended segment and returns its index."""
        if self.segments_sent >= self.expected_segments:
            raise ValueError(
                f"Segment {self.segments_sent} exceeds the {self.expected_segments} segments "
                f"of media {self.media_id}"
            )
        index = self.segments_sent
        self.segments_sent += 1
        return index

    def apply(self, media: UploadedMedia) -> None:
        """Folds a FINALIZE/STATUS response into the session.

        A reported state that would move backwards is ignored.
        """
        new_state = media.processing_state
        current = self.processing_state
        if new_state is not None:
            if current is not None and (current.is_terminal or new_state.rank < current.rank):
                logger.warning(
                    f"Ignoring state transition {current.value} -> {new_state.value} "
                    f"for media {self.media_id}"
                )
            else:
                self.processing_state = new_state
        self.check_after_secs = media.check_after_secs
        if media.progress_percent is not None:
            self.progress_percent = media.progress_percent
