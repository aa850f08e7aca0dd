import pytest

from database.models import Generation, MotionVideo
from operators import artifact_operator
from operators.artifact_operator import ArtifactStoreError
from operators.generation_operator import AssetInUseError, GenerationValidationError
from operators.motion_video_operator import (
    delete_motion_video,
    list_motion_videos,
    rename_motion_video,
    thumbnail_url,
    upload_motion_video,
)


def _upload(db_session, filename="dance.mp4", **overrides):
    kwargs = {
        "filename": filename,
        "content": b"mp4-bytes",
        "content_type": "video/mp4",
        "duration": 8.5,
    }
    kwargs.update(overrides)
    return upload_motion_video(db_session, **kwargs)


def test_upload_strips_extension_and_stores_thumbnail(db_session, fake_storage):
    video = _upload(db_session, filename="Hip Hop.mp4", thumbnail=b"jpeg-bytes")

    assert video.name == "Hip Hop"
    assert video.storage_path.startswith("videos/")
    assert video.storage_path.endswith("-Hip_Hop.mp4")
    assert video.thumbnail_path.startswith("thumbnails/")
    assert video.thumbnail_path.endswith("-Hip_Hop.jpg")
    assert thumbnail_url(video).endswith(video.thumbnail_path)
    assert set(fake_storage.objects) == {video.storage_path, video.thumbnail_path}


def test_upload_without_thumbnail(db_session, fake_storage):
    video = _upload(db_session, name="  my move.mov ")

    assert video.name == "my move"
    assert video.thumbnail_path is None
    assert thumbnail_url(video) is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"duration": 10.5},
        {"duration": 0},
        {"content": b""},
        {"content_type": "image/png"},
    ],
)
def test_upload_validation(db_session, fake_storage, overrides):
    with pytest.raises(GenerationValidationError):
        _upload(db_session, **overrides)

    assert db_session.query(MotionVideo).count() == 0
    assert fake_storage.objects == {}


def test_rename_requires_non_empty_name(db_session, fake_storage):
    video = _upload(db_session)

    with pytest.raises(GenerationValidationError):
        rename_motion_video(db_session, video.id, "   ")

    renamed = rename_motion_video(db_session, video.id, " Robot ")
    assert renamed.name == "Robot"


def test_last_motion_video_cannot_be_deleted(db_session, fake_storage):
    video = _upload(db_session)

    with pytest.raises(AssetInUseError):
        delete_motion_video(db_session, video.id)

    assert db_session.query(MotionVideo).count() == 1
    assert video.storage_path in fake_storage.objects


def test_delete_detaches_generations(db_session, fake_storage):
    doomed = _upload(db_session, filename="doomed.mp4", thumbnail=b"jpeg")
    keeper = _upload(db_session, filename="keeper.mp4")
    generation = Generation(
        image_url="https://cdn.example.com/characters/hana.png",
        motion_video_id=doomed.id,
    )
    db_session.add(generation)
    db_session.commit()

    assert delete_motion_video(db_session, doomed.id) is True

    db_session.refresh(generation)
    assert generation.motion_video_id is None
    assert [v.id for v in list_motion_videos(db_session)] == [keeper.id]
    assert set(fake_storage.objects) == {keeper.storage_path}


def test_delete_survives_storage_failure(db_session, fake_storage):
    doomed = _upload(db_session, filename="doomed.mp4")
    _upload(db_session, filename="keeper.mp4")
    fake_storage.fail_deletes = True

    assert delete_motion_video(db_session, doomed.id) is True
    assert db_session.query(MotionVideo).count() == 1


def test_failed_thumbnail_upload_removes_stored_video(db_session, fake_storage, monkeypatch):
    def _upload_file(bucket_name, contents, destination_blob_name, content_type=None):
        if destination_blob_name.startswith("thumbnails/"):
            return {}
        return fake_storage.upload_file(bucket_name, contents, destination_blob_name, content_type)

    monkeypatch.setattr(artifact_operator, "upload_file", _upload_file)

    with pytest.raises(ArtifactStoreError):
        _upload(db_session, thumbnail=b"jpeg-bytes")

    assert fake_storage.upload_calls == 1
    assert fake_storage.objects == {}
    assert db_session.query(MotionVideo).count() == 0
