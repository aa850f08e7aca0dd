from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from models.generation_models import GenerationProvider, GenerationStatus, UpscaleModel


class MotionGenerationRequest(BaseModel):
    image_url: str
    motion_video_url: str | None = None
    motion_video_id: str | None = None
    motion_preset_id: str | None = None
    provider: GenerationProvider = GenerationProvider.REPLICATE
    member_id: str | None = None
    music_id: str | None = None
    prompt: str | None = None
    mode: Literal["std", "pro"] | None = None
    character_orientation: Literal["image", "video"] | None = None


class ImageGenerationRequest(BaseModel):
    prompt: str
    character_image_url: str
    concept_image_url: str | None = None
    concept_image_id: str | None = None
    reference_type: Literal["background", "pose", "style", "composition"] | None = None
    resolution: Literal["1K", "2K", "4K"] | None = None
    aspect_ratio: str | None = None
    member_id: str | None = None


class GenerationUpdateRequest(BaseModel):
    music_id: str | None = None
    motion_video_id: str | None = None
    concept_image_id: str | None = None


class UpscaleRequest(BaseModel):
    model: UpscaleModel = UpscaleModel.REAL_ESRGAN
    resolution: Literal["FHD", "2k", "4k"] | None = None


class GenerationResponse(BaseModel):
    id: str
    type: str
    provider: str
    prediction_id: str | None = None
    member_id: str | None = None
    music_id: str | None = None
    music_title: str | None = None
    motion_video_id: str | None = None
    motion_video_name: str | None = None
    concept_image_id: str | None = None
    motion_preset_id: str | None = None
    prompt: str | None = None
    resolution: str | None = None
    image_url: str
    motion_video_url: str | None = None
    status: GenerationStatus
    video_url: str | None = None
    output_url: str | None = None
    duration: int | None = None
    error_message: str | None = None
    upscale_status: GenerationStatus | None = None
    upscale_model: str | None = None
    upscaled_video_url: str | None = None
    upscale_error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class GenerationCreateResponse(BaseModel):
    ok: bool
    generation: GenerationResponse


class GenerationListResponse(BaseModel):
    ok: bool
    generations: list[GenerationResponse]
    total: int


class GenerationStatusResponse(BaseModel):
    ok: bool
    generation_id: str
    status: GenerationStatus | None
    output: str | None = None
    error: str | None = None
    provider_status: str | None = None


class GenerationDeleteResponse(BaseModel):
    ok: bool


class MotionVideoResponse(BaseModel):
    id: str
    name: str
    duration: float
    video_url: str
    thumbnail_url: str | None = None
    created_at: datetime


class MotionVideoListResponse(BaseModel):
    ok: bool
    videos: list[MotionVideoResponse]


class MotionVideoUploadResponse(BaseModel):
    ok: bool
    video: MotionVideoResponse


class RenameRequest(BaseModel):
    name: str = Field(..., max_length=200)


class MotionPresetResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    preview_url: str | None = None
    start_end_frame: bool = False


class MotionPresetListResponse(BaseModel):
    ok: bool
    presets: list[MotionPresetResponse]


class ConceptImageResponse(BaseModel):
    id: str
    name: str
    public_url: str
    created_at: datetime


class ConceptImageListResponse(BaseModel):
    ok: bool
    concept_images: list[ConceptImageResponse]


class ConceptImageUploadResponse(BaseModel):
    ok: bool
    concept_image: ConceptImageResponse


class AssetDeleteResponse(BaseModel):
    ok: bool


class CharacterCreateRequest(BaseModel):
    id: str = Field(..., max_length=64)
    name: str = Field(..., max_length=200)
    description: str | None = None
    video: str | None = None
    poster: str | None = None
    display_order: int | None = None


class CharacterUpdateRequest(BaseModel):
    name: str | None = Field(None, max_length=200)
    description: str | None = None


class CharacterImageResponse(BaseModel):
    id: str
    character_id: str
    variant_id: str
    public_url: str
    created_at: datetime


class CharacterResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    video: str | None = None
    poster: str | None = None
    display_order: int
    images: list[CharacterImageResponse] = Field(default_factory=list)


class CharacterListResponse(BaseModel):
    ok: bool
    characters: list[CharacterResponse]


class CharacterImageUploadResponse(BaseModel):
    ok: bool
    image: CharacterImageResponse
