from __future__ import annotations

import http.client
import logging
import os
import re
import time
import urllib.error
import urllib.request
from dataclasses import dataclass

from utils.gcs_utils import delete_file, public_url, upload_file

logger = logging.getLogger(__name__)

ASSET_BUCKET = os.getenv("GCS_BUCKET", "shortform-studio")
DOWNLOAD_TIMEOUT_SECONDS = int(os.getenv("ARTIFACT_DOWNLOAD_TIMEOUT_SECONDS", "180"))

GENERATED_VIDEOS_FOLDER = "generated-videos"
GENERATED_IMAGES_FOLDER = "generated-images"
UPSCALED_VIDEOS_FOLDER = "upscaled-videos"
RESULT_VIDEOS_FOLDER = "result-videos"
RESULT_IMAGES_FOLDER = "result-images"
MOTION_VIDEOS_FOLDER = "videos"
THUMBNAILS_FOLDER = "thumbnails"
CONCEPT_IMAGES_FOLDER = "concept-images"
CHARACTERS_FOLDER = "characters"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ArtifactStoreError(Exception):
    pass


@dataclass
class StoredArtifact:
    storage_path: str
    public_url: str


def adopt_artifact(
    source_url: str,
    storage_key: str,
    content_type: str = "video/mp4",
) -> StoredArtifact:
    """
    Copy a transient provider output into our own bucket.

    The key is deterministic per job, and uploads overwrite, so adopting the
    same output twice leaves a single stored object.
    """
    if not source_url:
        raise ArtifactStoreError("Provider output URL is missing")

    content = fetch_remote_bytes(source_url)
    return store_bytes(content, storage_key, content_type)


def store_bytes(content: bytes, storage_key: str, content_type: str) -> StoredArtifact:
    if not content:
        raise ArtifactStoreError(f"Refusing to store empty content at {storage_key}")

    info = upload_file(
        bucket_name=ASSET_BUCKET,
        contents=content,
        destination_blob_name=storage_key,
        content_type=content_type,
    )
    if not info:
        raise ArtifactStoreError(f"Failed to upload {storage_key} to storage")

    stored_path = info.get("path") or storage_key
    return StoredArtifact(
        storage_path=stored_path,
        public_url=public_url(ASSET_BUCKET, stored_path),
    )


def delete_artifacts(storage_paths: list[str | None]) -> bool:
    """Best-effort removal; returns False when any object could not be deleted."""
    all_deleted = True
    for path in storage_paths:
        if not path:
            continue
        if not delete_file(bucket_name=ASSET_BUCKET, blob_name=path):
            logger.warning("Could not delete artifact %s; leaving it in storage", path)
            all_deleted = False
    return all_deleted


def artifact_public_url(storage_path: str) -> str:
    return public_url(ASSET_BUCKET, storage_path)


def fetch_remote_bytes(url: str) -> bytes:
    try:
        request = urllib.request.Request(url, method="GET")
        with urllib.request.urlopen(request, timeout=DOWNLOAD_TIMEOUT_SECONDS) as response:
            return response.read()
    except urllib.error.HTTPError as exc:
        raise ArtifactStoreError(f"Failed to download {url}: {exc.code}") from exc
    except urllib.error.URLError as exc:
        raise ArtifactStoreError(f"Failed to download {url}: {exc.reason}") from exc
    except (http.client.HTTPException, OSError, ValueError) as exc:
        # Truncated bodies, read timeouts, resets and malformed URLs
        raise ArtifactStoreError(f"Failed to download {url}: {exc!r}") from exc


def generated_video_key(generation_id) -> str:
    return f"{GENERATED_VIDEOS_FOLDER}/{generation_id}.mp4"


def generated_image_key(generation_id) -> str:
    return f"{GENERATED_IMAGES_FOLDER}/{generation_id}.jpg"


def upscaled_video_key(generation_id, model: str) -> str:
    return f"{UPSCALED_VIDEOS_FOLDER}/{generation_id}-{model}.mp4"


def result_video_key(generation_id, extension: str = ".mp4") -> str:
    return f"{RESULT_VIDEOS_FOLDER}/{generation_id}{extension}"


def result_image_key(generation_id, extension: str = ".jpg") -> str:
    return f"{RESULT_IMAGES_FOLDER}/{generation_id}{extension}"


def character_image_key(character_id: str, variant_id: str, extension: str = ".png") -> str:
    safe_id = _UNSAFE_NAME_CHARS.sub("_", character_id.strip()) or "character"
    if variant_id == "default":
        return f"{CHARACTERS_FOLDER}/{safe_id}{extension}"
    return f"{CHARACTERS_FOLDER}/{safe_id}_{variant_id}{extension}"


def timestamped_key(folder: str, filename: str) -> str:
    safe_name = _UNSAFE_NAME_CHARS.sub("_", filename.strip()) or "upload"
    return f"{folder}/{int(time.time() * 1000)}-{safe_name}"
