from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)

from database.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MotionVideo(Base):
    """Reusable motion-reference clip uploaded by a user."""

    __tablename__ = "motion_videos"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    thumbnail_path = Column(String, nullable=True)
    duration = Column(Float, nullable=False)  # seconds
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<MotionVideo id={self.id} name={self.name} duration={self.duration}>"


class ConceptImage(Base):
    """Reusable reference image for image generation."""

    __tablename__ = "concept_images"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    public_url = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<ConceptImage id={self.id} name={self.name}>"


class Character(Base):
    """A selectable member. Ids are stable slugs such as ``rumi``."""

    __tablename__ = "characters"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    video = Column(String, nullable=True)
    poster = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<Character id={self.id} name={self.name}>"


class CharacterImage(Base):
    """One image variant of a character; the first upload is ``default``."""

    __tablename__ = "character_images"

    id = Column(Uuid, primary_key=True, default=uuid4)
    character_id = Column(
        String, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    variant_id = Column(String, nullable=False)  # default, 02, 03, ...
    storage_path = Column(String, nullable=False)
    public_url = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("character_id", "variant_id", name="uq_character_images_variant"),
    )

    def __repr__(self):
        return (
            f"<CharacterImage id={self.id} character_id={self.character_id} "
            f"variant_id={self.variant_id}>"
        )


class Generation(Base):
    """
    One row per creative job.

    Holds two independent status machines: the primary job (``status``,
    ``prediction_id`` and the video/output columns) and the optional upscale
    job layered on top of it (``upscale_*`` columns).
    """

    __tablename__ = "generations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    type = Column(String, nullable=False, default="video")  # video, image
    provider = Column(String, nullable=False, default="replicate")  # replicate, higgsfield, upload
    prediction_id = Column(String, nullable=True)

    # Selection context
    member_id = Column(String, nullable=True)
    music_id = Column(String, nullable=True)
    motion_video_id = Column(
        Uuid, ForeignKey("motion_videos.id", ondelete="SET NULL"), nullable=True
    )
    concept_image_id = Column(
        Uuid, ForeignKey("concept_images.id", ondelete="SET NULL"), nullable=True
    )
    motion_preset_id = Column(String, nullable=True)
    prompt = Column(String, nullable=True)
    resolution = Column(String, nullable=True)

    # Inputs
    image_url = Column(String, nullable=False)
    motion_video_url = Column(String, nullable=True)

    # Primary output
    status = Column(String, nullable=False, default="pending")  # pending, processing, completed, failed
    video_url = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    output_url = Column(String, nullable=True)
    output_storage_path = Column(String, nullable=True)
    duration = Column(Integer, nullable=True)
    error_message = Column(String, nullable=True)

    # Upscale sub-lifecycle
    upscale_status = Column(String, nullable=True)
    upscale_model = Column(String, nullable=True)  # real-esrgan, topaz
    upscale_prediction_id = Column(String, nullable=True)
    upscaled_video_url = Column(String, nullable=True)
    upscaled_storage_path = Column(String, nullable=True)
    upscale_error_message = Column(String, nullable=True)
    upscale_requested_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("ix_generations_status", status),
        Index("ix_generations_created_at", created_at),
        Index("ix_generations_motion_video", motion_video_id),
        Index("ix_generations_concept_image", concept_image_id),
    )

    def __repr__(self):
        return (
            f"<Generation id={self.id} type={self.type} provider={self.provider} "
            f"status={self.status} upscale_status={self.upscale_status}>"
        )
