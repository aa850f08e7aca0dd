from __future__ import annotations

import logging
import os
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import ConceptImage, Generation, MotionVideo
from models.generation_models import GenerationProvider, GenerationStatus, GenerationType
from operators.artifact_operator import (
    ArtifactStoreError,
    artifact_public_url,
    delete_artifacts,
    generated_image_key,
    generated_video_key,
    result_image_key,
    result_video_key,
    store_bytes,
)
from operators.job_lifecycle import JobFields, JobKind, JobPollResult, poll_job, submit_job
from operators.provider_operator import (
    REFERENCE_INSTRUCTIONS,
    build_image_input,
    build_motion_input,
    build_motion_preset_input,
    get_provider_client,
)

logger = logging.getLogger(__name__)

MAX_RESULT_VIDEO_SECONDS = float(os.getenv("MAX_MOTION_VIDEO_SECONDS", "10"))
RESULT_VIDEO_TYPES = {"video/mp4": ".mp4", "video/quicktime": ".mov"}
RESULT_IMAGE_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}
MOTION_PROVIDERS = {GenerationProvider.REPLICATE.value, GenerationProvider.HIGGSFIELD.value}


class GenerationError(Exception):
    pass


class GenerationNotFoundError(GenerationError):
    def __init__(self, generation_id: UUID):
        self.generation_id = generation_id
        super().__init__(f"Generation not found: {generation_id}")


class GenerationValidationError(GenerationError):
    pass


class AssetInUseError(GenerationError):
    pass


VIDEO_JOB = JobKind(
    name="video",
    fields=JobFields(
        status="status",
        job_id="prediction_id",
        output_url="video_url",
        storage_path="storage_path",
        error="error_message",
        started_at="created_at",
    ),
    resolve_client=lambda record: get_provider_client("video", provider=record.provider),
    storage_key=lambda record: generated_video_key(record.id),
    content_type="video/mp4",
)

IMAGE_JOB = JobKind(
    name="image",
    fields=JobFields(
        status="status",
        job_id="prediction_id",
        output_url="output_url",
        storage_path="output_storage_path",
        error="error_message",
        started_at="created_at",
    ),
    resolve_client=lambda record: get_provider_client("image"),
    storage_key=lambda record: generated_image_key(record.id),
    content_type="image/jpeg",
)


def job_kind_for(generation: Generation) -> JobKind:
    if generation.type == GenerationType.IMAGE.value:
        return IMAGE_JOB
    return VIDEO_JOB


def submit_motion_generation(
    db: Session,
    image_url: str | None,
    motion_video_url: str | None = None,
    motion_video_id: UUID | None = None,
    motion_preset_id: str | None = None,
    provider: str = GenerationProvider.REPLICATE.value,
    member_id: str | None = None,
    music_id: str | None = None,
    prompt: str | None = None,
    mode: str | None = None,
    character_orientation: str | None = None,
) -> Generation:
    normalized_provider = str(provider or GenerationProvider.REPLICATE.value).strip().lower()
    if normalized_provider not in MOTION_PROVIDERS:
        raise GenerationValidationError(f"Unsupported provider: {provider}")

    image_url = _clean(image_url)
    if not image_url:
        raise GenerationValidationError("image_url is required")

    if motion_video_id and not motion_video_url:
        motion_video = db.get(MotionVideo, motion_video_id)
        if not motion_video:
            raise GenerationValidationError("motion_video_id not found")
        motion_video_url = artifact_public_url(motion_video.storage_path)
    motion_video_url = _clean(motion_video_url)
    motion_preset_id = _clean(motion_preset_id)

    if normalized_provider == GenerationProvider.HIGGSFIELD.value:
        if not motion_preset_id:
            raise GenerationValidationError("motion_preset_id is required for higgsfield")
        job_input = build_motion_preset_input(image_url, motion_preset_id, prompt=prompt)
    else:
        if not motion_video_url:
            raise GenerationValidationError("motion_video_url or motion_video_id is required")
        job_input = build_motion_input(
            image_url,
            motion_video_url,
            prompt=prompt,
            mode=mode,
            character_orientation=character_orientation,
        )

    generation = Generation(
        type=GenerationType.VIDEO.value,
        provider=normalized_provider,
        member_id=_clean(member_id),
        music_id=_clean(music_id),
        motion_video_id=motion_video_id,
        motion_preset_id=motion_preset_id,
        prompt=_clean(prompt),
        image_url=image_url,
        motion_video_url=motion_video_url,
    )
    return submit_job(db, generation, VIDEO_JOB, job_input)


def submit_image_generation(
    db: Session,
    prompt: str | None,
    character_image_url: str | None,
    concept_image_url: str | None = None,
    concept_image_id: UUID | None = None,
    reference_type: str | None = None,
    resolution: str | None = None,
    aspect_ratio: str | None = None,
    member_id: str | None = None,
) -> Generation:
    character_image_url = _clean(character_image_url)
    if not character_image_url:
        raise GenerationValidationError("character_image_url is required")

    prompt = _clean(prompt)
    if not prompt:
        raise GenerationValidationError("prompt is required")

    if reference_type and reference_type not in REFERENCE_INSTRUCTIONS:
        raise GenerationValidationError(f"Unsupported reference_type: {reference_type}")

    if concept_image_id and not concept_image_url:
        concept_image = db.get(ConceptImage, concept_image_id)
        if not concept_image:
            raise GenerationValidationError("concept_image_id not found")
        concept_image_url = concept_image.public_url

    job_input = build_image_input(
        prompt,
        character_image_url,
        concept_image_url=_clean(concept_image_url),
        reference_type=reference_type,
        resolution=resolution,
        aspect_ratio=aspect_ratio,
    )

    generation = Generation(
        type=GenerationType.IMAGE.value,
        provider=GenerationProvider.REPLICATE.value,
        member_id=_clean(member_id),
        concept_image_id=concept_image_id,
        prompt=prompt,
        resolution=job_input["resolution"],
        image_url=character_image_url,
    )
    return submit_job(db, generation, IMAGE_JOB, job_input)


def poll_generation(db: Session, generation_id: UUID) -> JobPollResult:
    generation = get_generation(db, generation_id)
    if not generation:
        raise GenerationNotFoundError(generation_id)
    return poll_job(db, generation, job_kind_for(generation))


def upload_result(
    db: Session,
    member_id: str | None,
    content: bytes,
    content_type: str | None,
    image_url: str | None = None,
    music_id: str | None = None,
    duration: float | None = None,
) -> Generation:
    """Store a user-made result as an already completed, provider-less generation."""
    member_id = _clean(member_id)
    if not member_id:
        raise GenerationValidationError("member_id is required")
    if not content:
        raise GenerationValidationError("File is empty")

    normalized_type = str(content_type or "").split(";", 1)[0].strip().lower()
    if normalized_type in RESULT_VIDEO_TYPES:
        if duration is None or duration <= 0:
            raise GenerationValidationError("Invalid duration")
        if duration > MAX_RESULT_VIDEO_SECONDS:
            raise GenerationValidationError(
                f"Video must be {MAX_RESULT_VIDEO_SECONDS:g} seconds or less"
            )
        generation_type = GenerationType.VIDEO.value
    elif normalized_type in RESULT_IMAGE_TYPES:
        generation_type = GenerationType.IMAGE.value
    else:
        raise GenerationValidationError("Only MP4/MOV videos or JPG/PNG/WebP images are allowed")

    generation = Generation(
        type=generation_type,
        provider=GenerationProvider.UPLOAD.value,
        status=GenerationStatus.COMPLETED.value,
        member_id=member_id,
        music_id=_clean(music_id),
        image_url=_clean(image_url) or "",
        duration=round(duration) if generation_type == GenerationType.VIDEO.value else None,
    )
    db.add(generation)
    db.flush()

    if generation_type == GenerationType.VIDEO.value:
        key = result_video_key(generation.id, RESULT_VIDEO_TYPES[normalized_type])
    else:
        key = result_image_key(generation.id, RESULT_IMAGE_TYPES[normalized_type])

    try:
        stored = store_bytes(content, key, normalized_type)
    except ArtifactStoreError:
        db.rollback()
        raise

    if generation_type == GenerationType.VIDEO.value:
        generation.video_url = stored.public_url
        generation.storage_path = stored.storage_path
    else:
        generation.output_url = stored.public_url
        generation.output_storage_path = stored.storage_path

    db.commit()
    db.refresh(generation)
    logger.info("Stored uploaded %s result as generation %s", generation_type, generation.id)
    return generation


def get_generation(db: Session, generation_id: UUID) -> Generation | None:
    return db.query(Generation).filter(Generation.id == generation_id).first()


def list_generations(
    db: Session,
    generation_type: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Generation], int]:
    query = db.query(Generation)
    if generation_type:
        query = query.filter(Generation.type == generation_type)
    if status:
        query = query.filter(Generation.status == status)

    total = query.count()
    generations = (
        query.order_by(Generation.created_at.desc()).offset(offset).limit(limit).all()
    )
    return generations, total


def motion_video_names(db: Session, generations: list[Generation]) -> dict[UUID, str]:
    motion_ids = {g.motion_video_id for g in generations if g.motion_video_id}
    if not motion_ids:
        return {}
    rows = db.query(MotionVideo.id, MotionVideo.name).filter(MotionVideo.id.in_(motion_ids)).all()
    return {row.id: row.name for row in rows}


def update_generation_references(
    db: Session,
    generation_id: UUID,
    changes: dict,
) -> Generation:
    """
    Re-point a generation's music track, motion video or concept image.

    ``changes`` only carries the keys the caller sent; an explicit None
    clears the reference.
    """
    generation = get_generation(db, generation_id)
    if not generation:
        raise GenerationNotFoundError(generation_id)

    if "music_id" in changes:
        generation.music_id = _clean(changes["music_id"])

    if "motion_video_id" in changes:
        motion_video_id = changes["motion_video_id"]
        if motion_video_id and not db.get(MotionVideo, motion_video_id):
            raise GenerationValidationError("motion_video_id not found")
        generation.motion_video_id = motion_video_id or None

    if "concept_image_id" in changes:
        concept_image_id = changes["concept_image_id"]
        if concept_image_id and not db.get(ConceptImage, concept_image_id):
            raise GenerationValidationError("concept_image_id not found")
        generation.concept_image_id = concept_image_id or None

    db.commit()
    db.refresh(generation)
    return generation


def delete_generation(db: Session, generation_id: UUID) -> bool:
    generation = get_generation(db, generation_id)
    if not generation:
        return False

    storage_paths = [
        generation.storage_path,
        generation.output_storage_path,
        generation.upscaled_storage_path,
    ]
    if not delete_artifacts(storage_paths):
        logger.warning(
            "Some artifacts of generation %s could not be deleted; removing the row anyway",
            generation_id,
        )

    db.delete(generation)
    db.commit()
    return True


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
