from __future__ import annotations

import logging
from pathlib import PurePath
from uuid import UUID

from sqlalchemy.orm import Session

from database.models import ConceptImage, Generation
from operators.artifact_operator import (
    CONCEPT_IMAGES_FOLDER,
    delete_artifacts,
    store_bytes,
    timestamped_key,
)
from operators.generation_operator import GenerationValidationError

logger = logging.getLogger(__name__)


def upload_concept_image(
    db: Session,
    filename: str,
    content: bytes,
    content_type: str | None,
    name: str | None = None,
) -> ConceptImage:
    if not content:
        raise GenerationValidationError("File is required")
    normalized_type = str(content_type or "").split(";", 1)[0].strip().lower()
    if not normalized_type.startswith("image/"):
        raise GenerationValidationError("Only image files can be uploaded")

    stored = store_bytes(content, timestamped_key(CONCEPT_IMAGES_FOLDER, filename), normalized_type)

    concept_image = ConceptImage(
        name=(name or "").strip() or PurePath(filename).stem or "Untitled",
        storage_path=stored.storage_path,
        public_url=stored.public_url,
    )
    db.add(concept_image)
    db.commit()
    db.refresh(concept_image)
    return concept_image


def list_concept_images(db: Session) -> list[ConceptImage]:
    return db.query(ConceptImage).order_by(ConceptImage.created_at.desc()).all()


def get_concept_image(db: Session, concept_image_id: UUID) -> ConceptImage | None:
    return db.query(ConceptImage).filter(ConceptImage.id == concept_image_id).first()


def rename_concept_image(
    db: Session, concept_image_id: UUID, name: str | None
) -> ConceptImage | None:
    name = (name or "").strip()
    if not name:
        raise GenerationValidationError("Name is required")

    concept_image = get_concept_image(db, concept_image_id)
    if not concept_image:
        return None

    concept_image.name = name
    db.commit()
    db.refresh(concept_image)
    return concept_image


def delete_concept_image(db: Session, concept_image_id: UUID) -> bool:
    concept_image = get_concept_image(db, concept_image_id)
    if not concept_image:
        return False

    db.query(Generation).filter(Generation.concept_image_id == concept_image_id).update(
        {Generation.concept_image_id: None}, synchronize_session=False
    )
    delete_artifacts([concept_image.storage_path])

    db.delete(concept_image)
    db.commit()
    logger.info("Deleted concept image %s", concept_image_id)
    return True
