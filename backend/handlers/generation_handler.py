import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from database.base import get_db
from database.models import Generation
from models.api_models import (
    GenerationCreateResponse,
    GenerationDeleteResponse,
    GenerationListResponse,
    GenerationResponse,
    GenerationStatusResponse,
    GenerationUpdateRequest,
    ImageGenerationRequest,
    MotionGenerationRequest,
)
from models.generation_models import GenerationStatus, GenerationType
from operators.artifact_operator import ArtifactStoreError
from operators.download_operator import build_download
from operators.generation_operator import (
    GenerationError,
    GenerationNotFoundError,
    GenerationValidationError,
    delete_generation,
    get_generation,
    list_generations,
    motion_video_names,
    poll_generation,
    submit_image_generation,
    submit_motion_generation,
    update_generation_references,
    upload_result,
)
from utils.music_catalog import track_title
from utils.replicate_provider import ProviderError
from utils.video_utils import MediaToolkitError


router = APIRouter(prefix="/generations", tags=["generations"])
logger = logging.getLogger(__name__)


def parse_uuid(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}")


def raise_for_generation_error(db: Session, exc: Exception) -> None:
    """Roll back and translate an operator error into an HTTPException."""
    db.rollback()
    if isinstance(exc, GenerationNotFoundError):
        raise HTTPException(status_code=404, detail="Generation not found")
    if isinstance(exc, GenerationValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ProviderError):
        logger.warning("Provider call failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, ArtifactStoreError):
        raise HTTPException(status_code=500, detail=f"Failed to store file: {exc}")
    raise HTTPException(status_code=500, detail=str(exc))


def generation_to_response(
    generation: Generation,
    motion_video_name: str | None = None,
) -> GenerationResponse:
    return GenerationResponse(
        id=str(generation.id),
        type=generation.type,
        provider=generation.provider,
        prediction_id=generation.prediction_id,
        member_id=generation.member_id,
        music_id=generation.music_id,
        music_title=track_title(generation.music_id) if generation.music_id else None,
        motion_video_id=str(generation.motion_video_id) if generation.motion_video_id else None,
        motion_video_name=motion_video_name,
        concept_image_id=str(generation.concept_image_id) if generation.concept_image_id else None,
        motion_preset_id=generation.motion_preset_id,
        prompt=generation.prompt,
        resolution=generation.resolution,
        image_url=generation.image_url,
        motion_video_url=generation.motion_video_url,
        status=generation.status,
        video_url=generation.video_url,
        output_url=generation.output_url,
        duration=generation.duration,
        error_message=generation.error_message,
        upscale_status=generation.upscale_status,
        upscale_model=generation.upscale_model,
        upscaled_video_url=generation.upscaled_video_url,
        upscale_error_message=generation.upscale_error_message,
        created_at=generation.created_at,
        updated_at=generation.updated_at,
    )


@router.post("/video", response_model=GenerationCreateResponse)
def create_motion_generation(
    request: MotionGenerationRequest,
    db: Session = Depends(get_db),
):
    try:
        generation = submit_motion_generation(
            db,
            image_url=request.image_url,
            motion_video_url=request.motion_video_url,
            motion_video_id=parse_uuid(request.motion_video_id, "motion_video_id"),
            motion_preset_id=request.motion_preset_id,
            provider=request.provider.value,
            member_id=request.member_id,
            music_id=request.music_id,
            prompt=request.prompt,
            mode=request.mode,
            character_orientation=request.character_orientation,
        )
    except (GenerationError, ProviderError) as e:
        raise_for_generation_error(db, e)

    return GenerationCreateResponse(ok=True, generation=generation_to_response(generation))


@router.post("/image", response_model=GenerationCreateResponse)
def create_image_generation(
    request: ImageGenerationRequest,
    db: Session = Depends(get_db),
):
    try:
        generation = submit_image_generation(
            db,
            prompt=request.prompt,
            character_image_url=request.character_image_url,
            concept_image_url=request.concept_image_url,
            concept_image_id=parse_uuid(request.concept_image_id, "concept_image_id"),
            reference_type=request.reference_type,
            resolution=request.resolution,
            aspect_ratio=request.aspect_ratio,
            member_id=request.member_id,
        )
    except (GenerationError, ProviderError) as e:
        raise_for_generation_error(db, e)

    return GenerationCreateResponse(ok=True, generation=generation_to_response(generation))


@router.post("/upload", response_model=GenerationCreateResponse)
async def upload_generation_result(
    file: UploadFile = File(...),
    member_id: str = Form(...),
    image_url: str | None = Form(None),
    music_id: str | None = Form(None),
    duration: float | None = Form(None),
    db: Session = Depends(get_db),
):
    content = await file.read()
    try:
        generation = upload_result(
            db,
            member_id=member_id,
            content=content,
            content_type=file.content_type,
            image_url=image_url,
            music_id=music_id,
            duration=duration,
        )
    except (GenerationError, ArtifactStoreError) as e:
        raise_for_generation_error(db, e)

    return GenerationCreateResponse(ok=True, generation=generation_to_response(generation))


@router.get("", response_model=GenerationListResponse)
def generations_list(
    db: Session = Depends(get_db),
    type: GenerationType | None = Query(None, description="Filter by generation type"),
    status: GenerationStatus | None = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    generations, total = list_generations(
        db,
        generation_type=type.value if type else None,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    names = motion_video_names(db, generations)

    return GenerationListResponse(
        ok=True,
        generations=[
            generation_to_response(g, names.get(g.motion_video_id)) for g in generations
        ],
        total=total,
    )


@router.get("/{generation_id}", response_model=GenerationResponse)
def generation_get(
    generation_id: UUID,
    db: Session = Depends(get_db),
):
    generation = get_generation(db, generation_id)
    if not generation:
        raise HTTPException(status_code=404, detail="Generation not found")
    names = motion_video_names(db, [generation])
    return generation_to_response(generation, names.get(generation.motion_video_id))


@router.get("/{generation_id}/status", response_model=GenerationStatusResponse)
def generation_status(
    generation_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        result = poll_generation(db, generation_id)
    except (GenerationError, ProviderError) as e:
        raise_for_generation_error(db, e)

    return GenerationStatusResponse(
        ok=True,
        generation_id=str(generation_id),
        status=result.status,
        output=result.output,
        error=result.error,
        provider_status=result.provider_status,
    )


@router.patch("/{generation_id}", response_model=GenerationCreateResponse)
def generation_update(
    generation_id: UUID,
    request: GenerationUpdateRequest,
    db: Session = Depends(get_db),
):
    changes = request.model_dump(exclude_unset=True)
    for field_name in ("motion_video_id", "concept_image_id"):
        if field_name in changes:
            changes[field_name] = parse_uuid(changes[field_name], field_name)

    try:
        generation = update_generation_references(db, generation_id, changes)
    except GenerationError as e:
        raise_for_generation_error(db, e)

    return GenerationCreateResponse(ok=True, generation=generation_to_response(generation))


@router.delete("/{generation_id}", response_model=GenerationDeleteResponse)
def generation_delete(
    generation_id: UUID,
    db: Session = Depends(get_db),
):
    if not delete_generation(db, generation_id):
        raise HTTPException(status_code=404, detail="Generation not found")
    return GenerationDeleteResponse(ok=True)


@router.get("/{generation_id}/download")
def generation_download(
    generation_id: UUID,
    request: Request,
    upscaled: bool = Query(False, description="Download the upscaled video"),
    music: bool = Query(True, description="Replace the audio with the selected music"),
    db: Session = Depends(get_db),
):
    try:
        payload = build_download(
            db,
            generation_id,
            toolkit=request.app.state.media_toolkit,
            upscaled=upscaled,
            with_music=music,
        )
    except (GenerationError, ArtifactStoreError) as e:
        raise_for_generation_error(db, e)
    except MediaToolkitError as e:
        logger.error("Download of generation %s failed: %s", generation_id, e)
        raise HTTPException(status_code=503, detail=str(e))

    return Response(
        content=payload.content,
        media_type=payload.content_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )
