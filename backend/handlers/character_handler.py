from collections import defaultdict
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from database.base import get_db
from models.api_models import (
    AssetDeleteResponse,
    CharacterCreateRequest,
    CharacterImageResponse,
    CharacterImageUploadResponse,
    CharacterListResponse,
    CharacterResponse,
    CharacterUpdateRequest,
)
from operators.artifact_operator import ArtifactStoreError
from operators.character_operator import (
    create_character,
    delete_character_image,
    list_character_images,
    list_characters,
    update_character,
    upload_character_image,
)
from operators.generation_operator import AssetInUseError, GenerationValidationError

router = APIRouter(prefix="/characters", tags=["characters"])


def _image_to_response(image) -> CharacterImageResponse:
    return CharacterImageResponse(
        id=str(image.id),
        character_id=image.character_id,
        variant_id=image.variant_id,
        public_url=image.public_url,
        created_at=image.created_at,
    )


def _character_to_response(character, images=()) -> CharacterResponse:
    return CharacterResponse(
        id=character.id,
        name=character.name,
        description=character.description,
        video=character.video,
        poster=character.poster,
        display_order=character.display_order,
        images=[_image_to_response(i) for i in images],
    )


@router.get("", response_model=CharacterListResponse)
def characters_list(db: Session = Depends(get_db)):
    characters = list_characters(db)
    images_by_character = defaultdict(list)
    for image in list_character_images(db):
        images_by_character[image.character_id].append(image)

    return CharacterListResponse(
        ok=True,
        characters=[
            _character_to_response(c, images_by_character[c.id]) for c in characters
        ],
    )


@router.post("", response_model=CharacterResponse)
def character_create(
    request: CharacterCreateRequest,
    db: Session = Depends(get_db),
):
    try:
        character = create_character(
            db,
            character_id=request.id,
            name=request.name,
            description=request.description,
            video=request.video,
            poster=request.poster,
            display_order=request.display_order,
        )
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _character_to_response(character)


@router.patch("/{character_id}", response_model=CharacterResponse)
def character_update(
    character_id: str,
    request: CharacterUpdateRequest,
    db: Session = Depends(get_db),
):
    try:
        character = update_character(
            db, character_id, name=request.name, description=request.description
        )
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not character:
        raise HTTPException(status_code=404, detail="Character not found")
    return _character_to_response(character, list_character_images(db, [character.id]))


@router.post("/{character_id}/images", response_model=CharacterImageUploadResponse)
async def character_image_upload(
    character_id: str,
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    content = await image.read()
    try:
        stored = upload_character_image(
            db,
            character_id=character_id,
            filename=image.filename or "",
            content=content,
            content_type=image.content_type,
        )
    except GenerationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ArtifactStoreError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to upload character image: {e}")

    if not stored:
        raise HTTPException(status_code=404, detail="Character not found")
    return CharacterImageUploadResponse(ok=True, image=_image_to_response(stored))


@router.delete("/images/{image_id}", response_model=AssetDeleteResponse)
def character_image_delete(
    image_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        deleted = delete_character_image(db, image_id)
    except AssetInUseError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Image not found")
    return AssetDeleteResponse(ok=True)
