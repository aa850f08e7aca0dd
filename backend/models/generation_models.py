from enum import Enum


class GenerationStatus(str, Enum):
    """Status of a generation job (primary or upscale)."""

    PENDING = "pending"  # Submitted to the provider, not picked up yet
    PROCESSING = "processing"  # Provider is working on it
    COMPLETED = "completed"  # Output available
    FAILED = "failed"  # Provider failed, cancelled or timed out


class GenerationType(str, Enum):
    VIDEO = "video"
    IMAGE = "image"


class GenerationProvider(str, Enum):
    REPLICATE = "replicate"
    HIGGSFIELD = "higgsfield"
    UPLOAD = "upload"  # User-supplied result, no provider job


class UpscaleModel(str, Enum):
    REAL_ESRGAN = "real-esrgan"  # fast and cheap
    TOPAZ = "topaz"  # higher quality


ACTIVE_STATUSES = frozenset({GenerationStatus.PENDING.value, GenerationStatus.PROCESSING.value})
TERMINAL_STATUSES = frozenset({GenerationStatus.COMPLETED.value, GenerationStatus.FAILED.value})
