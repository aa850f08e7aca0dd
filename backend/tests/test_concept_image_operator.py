import pytest

from database.models import ConceptImage, Generation
from operators.artifact_operator import artifact_public_url
from operators.concept_image_operator import (
    delete_concept_image,
    list_concept_images,
    rename_concept_image,
    upload_concept_image,
)
from operators.generation_operator import GenerationValidationError


def test_upload_concept_image(db_session, fake_storage):
    image = upload_concept_image(
        db_session,
        filename="beach day.png",
        content=b"png-bytes",
        content_type="image/png",
    )

    assert image.name == "beach day"
    assert image.storage_path.startswith("concept-images/")
    assert image.public_url == artifact_public_url(image.storage_path)
    assert fake_storage.objects[image.storage_path] == b"png-bytes"


def test_upload_rejects_non_images(db_session, fake_storage):
    with pytest.raises(GenerationValidationError):
        upload_concept_image(
            db_session,
            filename="notes.pdf",
            content=b"%PDF",
            content_type="application/pdf",
        )
    assert list_concept_images(db_session) == []


def test_rename_concept_image(db_session, fake_storage):
    image = upload_concept_image(
        db_session, filename="a.jpg", content=b"jpg", content_type="image/jpeg", name="Cafe"
    )
    assert image.name == "Cafe"

    with pytest.raises(GenerationValidationError):
        rename_concept_image(db_session, image.id, "")

    assert rename_concept_image(db_session, image.id, "Rooftop").name == "Rooftop"


def test_deleting_only_concept_image_is_allowed(db_session, fake_storage):
    image = upload_concept_image(
        db_session, filename="a.jpg", content=b"jpg", content_type="image/jpeg"
    )
    generation = Generation(
        type="image",
        image_url="https://cdn.example.com/characters/hana.png",
        concept_image_id=image.id,
    )
    db_session.add(generation)
    db_session.commit()

    assert delete_concept_image(db_session, image.id) is True

    db_session.refresh(generation)
    assert generation.concept_image_id is None
    assert db_session.query(ConceptImage).count() == 0
    assert fake_storage.objects == {}
