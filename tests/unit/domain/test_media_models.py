import pytest

from chirpkit.domain.models.media import MB, MediaCategory, ProcessingState, UploadedMedia, UploadSession


@pytest.mark.parametrize("category, max_size, media_type", [
    (MediaCategory.AMPLIFY_VIDEO, 512 * MB, "video/mp4"),
    (MediaCategory.TWEET_VIDEO, 512 * MB, "video/mp4"),
    (MediaCategory.TWEET_GIF, 15 * MB, "image/gif"),
    (MediaCategory.TWEET_IMAGE, 5 * MB, None),
])
def test_category_limits(category, max_size, media_type):
    assert category.max_size == max_size
    assert category.media_type == media_type


def test_from_json_full_response():
    media = UploadedMedia.from_json({
        "media_id": 710511363345354753,
        "media_id_string": "710511363345354753",
        "media_key": "13_710511363345354753",
        "size": 11065,
        "expires_after_secs": 86400,
        "image": {"image_type": "image/jpeg", "w": 800, "h": 320},
        "processing_info": {"state": "in_progress", "check_after_secs": 10, "progress_percent": 8},
    })

    assert media.media_id == "710511363345354753"
    assert media.size == 11065
    assert (media.image_width, media.image_height, media.image_type) == (800, 320, "image/jpeg")
    assert media.processing_state is ProcessingState.IN_PROGRESS
    assert media.check_after_secs == 10
    assert media.progress_percent == 8
    assert media.media_key == "13_710511363345354753"
    assert media.expires_after_secs == 86400


def test_from_json_numeric_id_only():
    assert UploadedMedia.from_json({"media_id": 42}).media_id == "42"


def test_from_json_without_media_id():
    with pytest.raises(KeyError):
        UploadedMedia.from_json({"errors": [{"code": 324}]})


def test_from_json_rejects_non_object():
    with pytest.raises(TypeError):
        UploadedMedia.from_json(["media_id"])


def test_equality_ignores_processing_fields():
    pending = UploadedMedia.from_json({"media_id_string": "1", "size": 10, "processing_info": {"state": "pending"}})
    done = UploadedMedia.from_json({"media_id_string": "1", "size": 10, "processing_info": {"state": "succeeded"}})
    other = UploadedMedia.from_json({"media_id_string": "2", "size": 10})

    assert pending == done
    assert hash(pending) == hash(done)
    assert pending != other


def test_session_segment_count():
    session = UploadSession(media_id="1", total_bytes=5 * MB, media_category=MediaCategory.TWEET_VIDEO)
    assert session.expected_segments == 3
    assert [session.record_segment() for _ in range(3)] == [0, 1, 2]
    with pytest.raises(ValueError):
        session.record_segment()


def test_session_empty_payload_has_no_segments():
    session = UploadSession(media_id="1", total_bytes=0, media_category=MediaCategory.TWEET_IMAGE)
    assert session.expected_segments == 0


def _status(state: str, progress: int = None) -> UploadedMedia:
    info = {"state": state, "check_after_secs": 5}
    if progress is not None:
        info["progress_percent"] = progress
    return UploadedMedia.from_json({"media_id_string": "1", "processing_info": info})


def test_session_state_moves_forward():
    session = UploadSession(media_id="1", total_bytes=1, media_category=MediaCategory.TWEET_VIDEO)
    session.apply(_status("pending"))
    session.apply(_status("in_progress", 30))
    assert session.processing_state is ProcessingState.IN_PROGRESS
    assert session.progress_percent == 30
    assert session.check_after_secs == 5
    assert not session.is_finished

    session.apply(_status("succeeded", 100))
    assert session.is_finished


def test_session_ignores_backward_transition(caplog):
    session = UploadSession(media_id="1", total_bytes=1, media_category=MediaCategory.TWEET_VIDEO)
    session.apply(_status("in_progress", 30))
    session.apply(_status("pending", 40))

    assert session.processing_state is ProcessingState.IN_PROGRESS
    assert session.progress_percent == 40
    assert "Ignoring state transition" in caplog.text


def test_session_terminal_state_is_final():
    session = UploadSession(media_id="1", total_bytes=1, media_category=MediaCategory.TWEET_VIDEO)
    session.apply(_status("failed"))
    session.apply(_status("succeeded"))
    assert session.processing_state is ProcessingState.FAILED


@pytest.mark.parametrize("body", [
    {"media_id": None},
    {"media_id_string": "", "media_id": None},
    {"media_id_string": None, "media_id": ""},
])
def test_from_json_rejects_empty_identifier(body):
    with pytest.raises(ValueError):
        UploadedMedia.from_json(body)


@pytest.mark.parametrize("body", [
    {"media_id": 1, "processing_info": "oops"},
    {"media_id": 1, "image": [640, 480]},
])
def test_from_json_rejects_non_object_sections(body):
    with pytest.raises(TypeError):
        UploadedMedia.from_json(body)
