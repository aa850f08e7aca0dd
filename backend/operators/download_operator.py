from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from models.generation_models import GenerationStatus, GenerationType
from operators.artifact_operator import fetch_remote_bytes
from operators.generation_operator import (
    GenerationNotFoundError,
    GenerationValidationError,
    get_generation,
)
from utils.music_catalog import get_track
from utils.video_utils import MediaToolkit

logger = logging.getLogger(__name__)


@dataclass
class DownloadPayload:
    content: bytes
    filename: str
    content_type: str = "video/mp4"
    with_music: bool = False


def build_download(
    db: Session,
    generation_id: UUID,
    toolkit: MediaToolkit,
    upscaled: bool = False,
    with_music: bool = True,
) -> DownloadPayload:
    """
    Fetch a finished video and re-sync it with the generation's music track.

    Generations without a known music track are returned as stored.
    """
    generation = get_generation(db, generation_id)
    if not generation:
        raise GenerationNotFoundError(generation_id)
    if generation.type != GenerationType.VIDEO.value:
        raise GenerationValidationError("Only video generations can be downloaded with music")

    if upscaled:
        if generation.upscale_status != GenerationStatus.COMPLETED.value:
            raise GenerationValidationError("Upscaled video is not available")
        source_url = generation.upscaled_video_url
    else:
        if generation.status != GenerationStatus.COMPLETED.value:
            raise GenerationValidationError("Video is not available yet")
        source_url = generation.video_url

    if not source_url:
        raise GenerationValidationError("Video is not available yet")

    video_bytes = fetch_remote_bytes(source_url)
    base_name = f"generation-{generation.id}" + ("-upscaled" if upscaled else "")

    track = get_track(generation.music_id) if with_music else None
    if track is None:
        return DownloadPayload(content=video_bytes, filename=f"{base_name}.mp4")

    merged = toolkit.merge_video_with_music(video_bytes, track.path)
    logger.info("Merged generation %s with track %s", generation.id, track.id)
    return DownloadPayload(
        content=merged,
        filename=f"{base_name}-{_slug(track.title)}.mp4",
        with_music=True,
    )


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "music"
