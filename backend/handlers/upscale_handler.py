from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.base import get_db
from handlers.generation_handler import generation_to_response, raise_for_generation_error
from models.api_models import GenerationCreateResponse, GenerationStatusResponse, UpscaleRequest
from operators.generation_operator import GenerationError
from operators.upscale_operator import poll_upscale, submit_upscale
from utils.replicate_provider import ProviderError


router = APIRouter(prefix="/generations/{generation_id}/upscale", tags=["upscale"])


@router.post("", response_model=GenerationCreateResponse)
def upscale_create(
    generation_id: UUID,
    request: UpscaleRequest | None = None,
    db: Session = Depends(get_db),
):
    request = request or UpscaleRequest()
    try:
        generation = submit_upscale(
            db,
            generation_id,
            model=request.model.value,
            resolution=request.resolution,
        )
    except (GenerationError, ProviderError) as e:
        raise_for_generation_error(db, e)

    return GenerationCreateResponse(ok=True, generation=generation_to_response(generation))


@router.get("", response_model=GenerationStatusResponse)
def upscale_status(
    generation_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        result = poll_upscale(db, generation_id)
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
