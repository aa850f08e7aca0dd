from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import Generation
from models.generation_models import ACTIVE_STATUSES, GenerationStatus, GenerationType
from operators.artifact_operator import delete_artifacts, upscaled_video_key
from operators.generation_operator import (
    GenerationNotFoundError,
    GenerationValidationError,
    get_generation,
)
from operators.job_lifecycle import JobFields, JobKind, JobPollResult, poll_job, submit_job
from operators.provider_operator import (
    DEFAULT_UPSCALE_MODEL,
    UPSCALE_MODELS,
    build_upscale_input,
    get_provider_client,
)

logger = logging.getLogger(__name__)

UPSCALE_RESOLUTIONS = {"FHD", "2k", "4k"}


UPSCALE_JOB = JobKind(
    name="upscale",
    fields=JobFields(
        status="upscale_status",
        job_id="upscale_prediction_id",
        output_url="upscaled_video_url",
        storage_path="upscaled_storage_path",
        error="upscale_error_message",
        started_at="upscale_requested_at",
    ),
    resolve_client=lambda record: get_provider_client("upscale", model=record.upscale_model),
    storage_key=lambda record: upscaled_video_key(record.id, record.upscale_model),
    content_type="video/mp4",
)


def submit_upscale(
    db: Session,
    generation_id: UUID,
    model: str | None = None,
    resolution: str | None = None,
) -> Generation:
    """
    Start an upscale of a generation's finished video.

    The primary video must be completed with a URL. A new request replaces a
    finished (completed or failed) upscale; one still in flight is rejected.
    """
    generation = get_generation(db, generation_id)
    if not generation:
        raise GenerationNotFoundError(generation_id)

    if generation.type != GenerationType.VIDEO.value:
        raise GenerationValidationError("Only video generations can be upscaled")
    if generation.status != GenerationStatus.COMPLETED.value or not generation.video_url:
        raise GenerationValidationError("Generation must be completed before upscaling")
    if generation.upscale_status in ACTIVE_STATUSES:
        raise GenerationValidationError("An upscale is already in progress")

    model = model or DEFAULT_UPSCALE_MODEL
    if model not in UPSCALE_MODELS:
        raise GenerationValidationError(f"Unsupported upscale model: {model}")
    if resolution and resolution not in UPSCALE_RESOLUTIONS:
        raise GenerationValidationError(f"Unsupported upscale resolution: {resolution}")

    job_input = build_upscale_input(model, generation.video_url, resolution)

    # The resolver reads the model from the row, so set it before submitting.
    previous_path = generation.upscaled_storage_path
    generation.upscale_model = model
    try:
        generation = submit_job(db, generation, UPSCALE_JOB, job_input, is_new=False)
    except Exception:
        db.rollback()
        raise

    # Upscaled outputs are keyed per model; drop the previous one.
    if previous_path:
        delete_artifacts([previous_path])
    return generation


def poll_upscale(db: Session, generation_id: UUID) -> JobPollResult:
    generation = get_generation(db, generation_id)
    if not generation:
        raise GenerationNotFoundError(generation_id)
    return poll_job(db, generation, UPSCALE_JOB)
