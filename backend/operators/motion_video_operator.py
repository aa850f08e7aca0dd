from __future__ import annotations

import logging
import os
from pathlib import PurePath
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import Generation, MotionVideo
from operators.artifact_operator import (
    MOTION_VIDEOS_FOLDER,
    THUMBNAILS_FOLDER,
    ArtifactStoreError,
    artifact_public_url,
    delete_artifacts,
    store_bytes,
    timestamped_key,
)
from operators.generation_operator import AssetInUseError, GenerationValidationError

logger = logging.getLogger(__name__)

MAX_MOTION_VIDEO_SECONDS = float(os.getenv("MAX_MOTION_VIDEO_SECONDS", "10"))
MOTION_VIDEO_TYPES = {"video/mp4", "video/quicktime", "video/webm"}


def upload_motion_video(
    db: Session,
    filename: str,
    content: bytes,
    content_type: str | None,
    duration: float | None,
    name: str | None = None,
    thumbnail: bytes | None = None,
) -> MotionVideo:
    if not content:
        raise GenerationValidationError("Video file is required")
    normalized_type = str(content_type or "").split(";", 1)[0].strip().lower()
    if normalized_type not in MOTION_VIDEO_TYPES:
        raise GenerationValidationError("Only MP4, MOV or WebM videos are allowed")
    if duration is None or duration <= 0:
        raise GenerationValidationError("Invalid duration")
    if duration > MAX_MOTION_VIDEO_SECONDS:
        raise GenerationValidationError(
            f"Motion video must be {MAX_MOTION_VIDEO_SECONDS:g} seconds or less"
        )

    stored = store_bytes(content, timestamped_key(MOTION_VIDEOS_FOLDER, filename), normalized_type)

    thumbnail_path = None
    if thumbnail:
        thumbnail_name = f"{PurePath(filename).stem}.jpg"
        try:
            thumbnail_path = store_bytes(
                thumbnail,
                timestamped_key(THUMBNAILS_FOLDER, thumbnail_name),
                "image/jpeg",
            ).storage_path
        except ArtifactStoreError:
            delete_artifacts([stored.storage_path])
            raise

    motion_video = MotionVideo(
        name=_strip_extension((name or "").strip() or filename or "Untitled"),
        storage_path=stored.storage_path,
        thumbnail_path=thumbnail_path,
        duration=duration,
    )
    db.add(motion_video)
    db.commit()
    db.refresh(motion_video)
    logger.info("Uploaded motion video %s (%s)", motion_video.id, motion_video.storage_path)
    return motion_video


def list_motion_videos(db: Session) -> list[MotionVideo]:
    return db.query(MotionVideo).order_by(MotionVideo.created_at.desc()).all()


def get_motion_video(db: Session, motion_video_id: UUID) -> MotionVideo | None:
    return db.query(MotionVideo).filter(MotionVideo.id == motion_video_id).first()


def rename_motion_video(db: Session, motion_video_id: UUID, name: str | None) -> MotionVideo | None:
    name = (name or "").strip()
    if not name:
        raise GenerationValidationError("Name is required")

    motion_video = get_motion_video(db, motion_video_id)
    if not motion_video:
        return None

    motion_video.name = name
    db.commit()
    db.refresh(motion_video)
    return motion_video


def delete_motion_video(db: Session, motion_video_id: UUID) -> bool:
    """
    Delete a motion video, detaching it from generations that used it.

    The last remaining motion video cannot be deleted. Storage cleanup is
    best effort; the row goes away even if the objects stay behind.
    """
    motion_video = get_motion_video(db, motion_video_id)
    if not motion_video:
        return False

    if db.query(MotionVideo).count() <= 1:
        raise AssetInUseError("Cannot delete the last remaining motion video")

    detached = (
        db.query(Generation)
        .filter(Generation.motion_video_id == motion_video_id)
        .update({Generation.motion_video_id: None}, synchronize_session=False)
    )

    delete_artifacts([motion_video.storage_path, motion_video.thumbnail_path])

    db.delete(motion_video)
    db.commit()
    logger.info("Deleted motion video %s, detached %d generations", motion_video_id, detached)
    return True


def motion_video_url(motion_video: MotionVideo) -> str:
    return artifact_public_url(motion_video.storage_path)


def thumbnail_url(motion_video: MotionVideo) -> str | None:
    if not motion_video.thumbnail_path:
        return None
    return artifact_public_url(motion_video.thumbnail_path)


def _strip_extension(name: str) -> str:
    stem = PurePath(name).stem if "." in name else name
    return stem or name
