from __future__ import annotations

import logging
from pathlib import PurePath
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import Character, CharacterImage
from operators.artifact_operator import (
    character_image_key,
    delete_artifacts,
    store_bytes,
)
from operators.generation_operator import AssetInUseError, GenerationValidationError

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_ID = "default"
IMAGE_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}


def create_character(
    db: Session,
    character_id: str | None,
    name: str | None,
    description: str | None = None,
    video: str | None = None,
    poster: str | None = None,
    display_order: int | None = None,
) -> Character:
    character_id = (character_id or "").strip()
    name = (name or "").strip()
    if not character_id:
        raise GenerationValidationError("id is required")
    if not name:
        raise GenerationValidationError("name is required")
    if get_character(db, character_id):
        raise GenerationValidationError(f"Character already exists: {character_id}")

    if display_order is None:
        display_order = db.query(Character).count()

    character = Character(
        id=character_id,
        name=name,
        description=(description or "").strip() or None,
        video=video,
        poster=poster,
        display_order=display_order,
    )
    db.add(character)
    db.commit()
    db.refresh(character)
    return character


def list_characters(db: Session) -> list[Character]:
    return db.query(Character).order_by(Character.display_order.asc(), Character.id.asc()).all()


def get_character(db: Session, character_id: str) -> Character | None:
    return db.query(Character).filter(Character.id == character_id).first()


def list_character_images(db: Session, character_ids: list[str] | None = None) -> list[CharacterImage]:
    query = db.query(CharacterImage)
    if character_ids is not None:
        query = query.filter(CharacterImage.character_id.in_(character_ids))
    return query.order_by(CharacterImage.character_id, CharacterImage.created_at.asc()).all()


def update_character(
    db: Session,
    character_id: str,
    name: str | None = None,
    description: str | None = None,
) -> Character | None:
    """
    Rename a character or change its description.

    A blank name is ignored rather than stored; a request that leaves nothing
    to update is rejected.
    """
    if not name and not description:
        raise GenerationValidationError("name or description is required")

    changes = {}
    if isinstance(name, str) and name.strip():
        changes["name"] = name.strip()
    if isinstance(description, str) and description:
        changes["description"] = description.strip()
    if not changes:
        raise GenerationValidationError("No valid fields to update")

    character = get_character(db, character_id)
    if not character:
        return None

    for field, value in changes.items():
        setattr(character, field, value)
    db.commit()
    db.refresh(character)
    return character


def next_variant_id(variant_ids: list[str]) -> str:
    """``default`` for the first image, then ``02``, ``03``... after the highest number."""
    if not variant_ids:
        return DEFAULT_VARIANT_ID

    numbers = []
    for variant_id in variant_ids:
        if variant_id == DEFAULT_VARIANT_ID:
            numbers.append(1)
        elif variant_id.isdigit() and int(variant_id) > 0:
            numbers.append(int(variant_id))
    return f"{max(numbers, default=1) + 1:02d}"


def upload_character_image(
    db: Session,
    character_id: str | None,
    filename: str,
    content: bytes,
    content_type: str | None,
) -> CharacterImage | None:
    character_id = (character_id or "").strip()
    if not character_id or not content:
        raise GenerationValidationError("image and characterId are required")
    normalized_type = str(content_type or "").split(";", 1)[0].strip().lower()
    if not normalized_type.startswith("image/"):
        raise GenerationValidationError("File must be an image")

    if not get_character(db, character_id):
        return None

    existing = db.query(CharacterImage.variant_id).filter(
        CharacterImage.character_id == character_id
    )
    variant_id = next_variant_id([row.variant_id for row in existing])

    extension = IMAGE_EXTENSIONS.get(normalized_type) or PurePath(filename).suffix.lower() or ".png"
    key = character_image_key(character_id, variant_id, extension)
    stored = store_bytes(content, key, normalized_type)

    image = CharacterImage(
        character_id=character_id,
        variant_id=variant_id,
        storage_path=stored.storage_path,
        public_url=stored.public_url,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info("Uploaded image %s for character %s (%s)", variant_id, character_id, image.id)
    return image


def delete_character_image(db: Session, image_id: UUID) -> bool:
    image = db.query(CharacterImage).filter(CharacterImage.id == image_id).first()
    if not image:
        return False

    remaining = (
        db.query(CharacterImage).filter(CharacterImage.character_id == image.character_id).count()
    )
    if remaining <= 1:
        raise AssetInUseError("Cannot delete the last image for a character")

    delete_artifacts([image.storage_path])

    db.delete(image)
    db.commit()
    logger.info("Deleted character image %s", image_id)
    return True
