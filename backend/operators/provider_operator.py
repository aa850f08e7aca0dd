from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from utils.higgsfield_provider import create_image_to_video, get_job_set
from utils.replicate_provider import (
    ProviderError,
    create_prediction,
    first_output_url,
    get_prediction,
)


MOTION_MODEL_VERSION = os.getenv(
    "REPLICATE_MOTION_MODEL_VERSION",
    "0b9053d30c02c3b6574ddf14f33499f7b69302c81954ad86239fa67bc5e52896",
)
IMAGE_MODEL_VERSION = os.getenv(
    "REPLICATE_IMAGE_MODEL_VERSION",
    "0785fb14f5aaa30eddf06fd49b6cbdaac4541b8854eb314211666e23a29087e3",
)

DEFAULT_MOTION_PROMPT = "a person performing the motion naturally"
DEFAULT_MOTION_MODE = "pro"
DEFAULT_CHARACTER_ORIENTATION = "image"
DEFAULT_IMAGE_RESOLUTION = "2K"
DEFAULT_IMAGE_ASPECT_RATIO = "2:3"
DEFAULT_UPSCALE_MODEL = "real-esrgan"
DEFAULT_UPSCALE_RESOLUTION = "FHD"

REFERENCE_INSTRUCTIONS = {
    "background": "Use the background from the reference image. ",
    "pose": "Match the pose from the reference image. ",
    "style": "Apply the art style from the reference image. ",
    "composition": "Use the composition and layout from the reference image. ",
}

HIGGSFIELD_TERMINAL_STATES = {
    "completed": "succeeded",
    "failed": "failed",
    "nsfw": "failed",
    "canceled": "canceled",
    "cancelled": "canceled",
}


@dataclass
class ProviderJob:
    """Provider job snapshot, normalised to Replicate's status vocabulary."""

    state: str
    output_url: str | None = None
    error: str | None = None


class ProviderClient(Protocol):
    name: str

    def submit(self, job_input: dict[str, Any]) -> str: ...

    def poll(self, job_id: str) -> ProviderJob: ...


class ReplicateModelClient:
    name = "replicate"

    def __init__(self, version: str):
        self.version = version

    def submit(self, job_input: dict[str, Any]) -> str:
        return create_prediction(self.version, job_input).id

    def poll(self, job_id: str) -> ProviderJob:
        prediction = get_prediction(job_id)
        return ProviderJob(
            state=prediction.status,
            output_url=first_output_url(prediction.output),
            error=prediction.error,
        )


class HiggsfieldMotionClient:
    name = "higgsfield"

    def submit(self, job_input: dict[str, Any]) -> str:
        return create_image_to_video(**job_input).id

    def poll(self, job_id: str) -> ProviderJob:
        job = get_job_set(job_id).first_job
        if job is None:
            return ProviderJob(state="starting")

        state = HIGGSFIELD_TERMINAL_STATES.get(job.status.lower(), "processing")
        if state == "failed":
            return ProviderJob(state=state, error=f"Higgsfield job {job.status}")
        if state == "succeeded" and not job.result_url:
            return ProviderJob(state="failed", error="Higgsfield job completed without a result")
        return ProviderJob(state=state, output_url=job.result_url)


@dataclass(frozen=True)
class UpscaleModelConfig:
    key: str
    version: str
    build_input: Callable[[str, str], dict[str, Any]] = field(compare=False)


def _real_esrgan_input(video_url: str, resolution: str) -> dict[str, Any]:
    return {
        "video_path": video_url,
        "resolution": resolution,
        "model": "RealESRGAN_x4plus",
    }


def _topaz_input(video_url: str, resolution: str) -> dict[str, Any]:
    return {
        "video": video_url,
        "target_resolution": "4k" if resolution == "4k" else "1080p",
        "target_fps": 30,
    }


UPSCALE_MODELS: dict[str, UpscaleModelConfig] = {
    "real-esrgan": UpscaleModelConfig(
        key="real-esrgan",
        version=os.getenv(
            "REPLICATE_REAL_ESRGAN_VERSION",
            "42e594a21b2f4c98faad74e1e6c49a1c8ec2c48df3a0f5a81d49e98f22da896c",
        ),
        build_input=_real_esrgan_input,
    ),
    "topaz": UpscaleModelConfig(
        key="topaz",
        version=os.getenv(
            "REPLICATE_TOPAZ_VERSION",
            "f4dad23bbe2d0bf4736d2ea8c9156f1911d8eeb511c8d0bb390931e25caaef61",
        ),
        build_input=_topaz_input,
    ),
}


def get_provider_client(
    job_kind: str,
    provider: str = "replicate",
    model: str | None = None,
) -> ProviderClient:
    if job_kind == "video":
        if provider == "higgsfield":
            return HiggsfieldMotionClient()
        if provider == "replicate":
            return ReplicateModelClient(MOTION_MODEL_VERSION)
        raise ValueError(f"Unsupported motion provider: {provider}")

    if job_kind == "image":
        return ReplicateModelClient(IMAGE_MODEL_VERSION)

    if job_kind == "upscale":
        config = UPSCALE_MODELS.get(model or DEFAULT_UPSCALE_MODEL)
        if config is None:
            raise ValueError(f"Unsupported upscale model: {model}")
        return ReplicateModelClient(config.version)

    raise ValueError(f"Unsupported job kind: {job_kind}")


def build_motion_input(
    image_url: str,
    motion_video_url: str,
    prompt: str | None = None,
    mode: str | None = None,
    character_orientation: str | None = None,
) -> dict[str, Any]:
    return {
        "image": image_url,
        "video": motion_video_url,
        "prompt": (prompt or "").strip() or DEFAULT_MOTION_PROMPT,
        "mode": mode or DEFAULT_MOTION_MODE,
        "character_orientation": character_orientation or DEFAULT_CHARACTER_ORIENTATION,
    }


def build_motion_preset_input(
    image_url: str,
    motion_preset_id: str,
    prompt: str | None = None,
    strength: float | None = None,
) -> dict[str, Any]:
    return {
        "image_url": image_url,
        "motion_id": motion_preset_id,
        "prompt": (prompt or "").strip() or None,
        "strength": strength,
    }


def build_image_input(
    prompt: str,
    character_image_url: str,
    concept_image_url: str | None = None,
    reference_type: str | None = None,
    resolution: str | None = None,
    aspect_ratio: str | None = None,
) -> dict[str, Any]:
    full_prompt = prompt
    if reference_type and concept_image_url:
        full_prompt = REFERENCE_INSTRUCTIONS.get(reference_type, "") + prompt

    image_input = [character_image_url]
    if concept_image_url:
        image_input.append(concept_image_url)

    return {
        "prompt": full_prompt,
        "image_input": image_input,
        "resolution": resolution or DEFAULT_IMAGE_RESOLUTION,
        "aspect_ratio": aspect_ratio or DEFAULT_IMAGE_ASPECT_RATIO,
        "output_format": "jpg",
        "safety_filter_level": "block_only_high",
    }


def build_upscale_input(model: str, video_url: str, resolution: str | None = None) -> dict[str, Any]:
    config = UPSCALE_MODELS.get(model)
    if config is None:
        raise ValueError(f"Unsupported upscale model: {model}")
    return config.build_input(video_url, resolution or DEFAULT_UPSCALE_RESOLUTION)
