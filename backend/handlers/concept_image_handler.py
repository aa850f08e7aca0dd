from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from database.base import get_db
from models.api_models import (
    AssetDeleteResponse,
    ConceptImageListResponse,
    ConceptImageResponse,
    ConceptImageUploadResponse,
    RenameRequest,
)
from operators.artifact_operator import ArtifactStoreError
from operators.concept_image_operator import (
    delete_concept_image,
    list_concept_images,
    rename_concept_image,
    upload_concept_image,
)
from operators.generation_operator import GenerationValidationError

router = APIRouter(prefix="/concept-images", tags=["concept-images"])


def _concept_image_to_response(image) -> ConceptImageResponse:
    return ConceptImageResponse(
        id=str(image.id),
        name=image.name,
        public_url=image.public_url,
        created_at=image.created_at,
    )


@router.get("", response_model=ConceptImageListResponse)
def concept_images_list(db: Session = Depends(get_db)):
    images = list_concept_images(db)
    return ConceptImageListResponse(
        ok=True,
        concept_images=[_concept_image_to_response(i) for i in images],
    )


@router.post("", response_model=ConceptImageUploadResponse)
async def concept_image_upload(
    file: UploadFile = File(...),
    name: str | None = Form(None),
    db: Session = Depends(get_db),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="File must have a filename")

    content = await file.read()
    try:
        image = upload_concept_image(
            db,
            filename=file.filename,
            content=content,
            content_type=file.content_type,
            name=name,
        )
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ArtifactStoreError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to upload concept image: {e}")

    return ConceptImageUploadResponse(ok=True, concept_image=_concept_image_to_response(image))


@router.patch("/{concept_image_id}", response_model=ConceptImageResponse)
def concept_image_rename(
    concept_image_id: UUID,
    request: RenameRequest,
    db: Session = Depends(get_db),
):
    try:
        image = rename_concept_image(db, concept_image_id, request.name)
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not image:
        raise HTTPException(status_code=404, detail="Concept image not found")
    return _concept_image_to_response(image)


@router.delete("/{concept_image_id}", response_model=AssetDeleteResponse)
def concept_image_delete(
    concept_image_id: UUID,
    db: Session = Depends(get_db),
):
    if not delete_concept_image(db, concept_image_id):
        raise HTTPException(status_code=404, detail="Concept image not found")
    return AssetDeleteResponse(ok=True)
