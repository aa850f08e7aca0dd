import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from database.base import get_db
from models.api_models import (
    AssetDeleteResponse,
    MotionPresetListResponse,
    MotionPresetResponse,
    MotionVideoListResponse,
    MotionVideoResponse,
    MotionVideoUploadResponse,
    RenameRequest,
)
from operators.artifact_operator import ArtifactStoreError
from operators.generation_operator import AssetInUseError, GenerationValidationError
from operators.motion_video_operator import (
    delete_motion_video,
    list_motion_videos,
    motion_video_url,
    rename_motion_video,
    thumbnail_url,
    upload_motion_video,
)
from utils.higgsfield_provider import list_motions
from utils.replicate_provider import ProviderError

router = APIRouter(tags=["motion"])
logger = logging.getLogger(__name__)


def _motion_video_to_response(video) -> MotionVideoResponse:
    return MotionVideoResponse(
        id=str(video.id),
        name=video.name,
        duration=video.duration,
        video_url=motion_video_url(video),
        thumbnail_url=thumbnail_url(video),
        created_at=video.created_at,
    )


@router.get("/motion-videos", response_model=MotionVideoListResponse)
def motion_videos_list(db: Session = Depends(get_db)):
    videos = list_motion_videos(db)
    return MotionVideoListResponse(
        ok=True,
        videos=[_motion_video_to_response(v) for v in videos],
    )


@router.post("/motion-videos", response_model=MotionVideoUploadResponse)
async def motion_video_upload(
    video: UploadFile = File(...),
    duration: float = Form(...),
    name: str | None = Form(None),
    thumbnail: UploadFile | None = File(None),
    db: Session = Depends(get_db),
):
    if not video.filename:
        raise HTTPException(status_code=400, detail="File must have a filename")

    content = await video.read()
    thumbnail_bytes = await thumbnail.read() if thumbnail else None

    try:
        motion_video = upload_motion_video(
            db,
            filename=video.filename,
            content=content,
            content_type=video.content_type,
            duration=duration,
            name=name,
            thumbnail=thumbnail_bytes,
        )
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ArtifactStoreError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to upload motion video: {e}")

    return MotionVideoUploadResponse(ok=True, video=_motion_video_to_response(motion_video))


@router.patch("/motion-videos/{motion_video_id}", response_model=MotionVideoResponse)
def motion_video_rename(
    motion_video_id: UUID,
    request: RenameRequest,
    db: Session = Depends(get_db),
):
    try:
        video = rename_motion_video(db, motion_video_id, request.name)
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not video:
        raise HTTPException(status_code=404, detail="Motion video not found")
    return _motion_video_to_response(video)


@router.delete("/motion-videos/{motion_video_id}", response_model=AssetDeleteResponse)
def motion_video_delete(
    motion_video_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        deleted = delete_motion_video(db, motion_video_id)
    except AssetInUseError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Motion video not found")
    return AssetDeleteResponse(ok=True)


@router.get("/motion-presets", response_model=MotionPresetListResponse)
def motion_presets_list():
    try:
        presets = list_motions()
    except ProviderError as e:
        logger.warning("Failed to list motion presets: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    return MotionPresetListResponse(
        ok=True,
        presets=[
            MotionPresetResponse(
                id=p.id,
                name=p.name,
                description=p.description or None,
                preview_url=p.preview_url,
                start_end_frame=p.start_end_frame,
            )
            for p in presets
        ],
    )
