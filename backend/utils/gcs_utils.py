from __future__ import annotations

import json
import os
import logging
import urllib.parse

import dotenv
from google.cloud import storage
from google.cloud.exceptions import Conflict, NotFound
from google.oauth2 import service_account


dotenv.load_dotenv()
logger = logging.getLogger(__name__)

STORAGE_PUBLIC_BASE_URL = os.getenv(
    "STORAGE_PUBLIC_BASE_URL", "https://storage.googleapis.com"
).rstrip("/")


def _get_storage_client() -> storage.Client:
    credentials_raw: str = os.getenv("GCP_CREDENTIALS", "")
    if not credentials_raw:
        return storage.Client()
    credentials_info = json.loads(credentials_raw)
    credentials = service_account.Credentials.from_service_account_info(
        credentials_info
    )
    return storage.Client(
        credentials=credentials, project=credentials_info.get("project_id")
    )


def _get_bucket(bucket_name: str) -> storage.Bucket:
    storage_client = _get_storage_client()
    return storage_client.bucket(bucket_name)


def init_bucket(bucket_name: str, cors_origins: list[str] | None = None) -> bool:
    try:
        storage_client = _get_storage_client()
        bucket = storage_client.bucket(bucket_name)
        bucket.storage_class = "STANDARD"

        storage_client.create_bucket(bucket)
    except Conflict:
        bucket = _get_bucket(bucket_name)
    except Exception:
        logger.exception("Error creating bucket %s", bucket_name)
        return False

    if cors_origins:
        try:
            bucket.cors = [
                {
                    "origin": cors_origins,
                    "method": ["GET", "HEAD"],
                    "responseHeader": ["Content-Type", "Content-Length"],
                    "maxAgeSeconds": 3600,
                }
            ]
            bucket.patch()
        except Exception:
            logger.exception("Error updating CORS for bucket %s", bucket_name)
            return False
    return True


def upload_file(
    bucket_name: str,
    contents: bytes,
    destination_blob_name: str,
    content_type: str | None = None,
) -> dict:
    """Upload bytes, overwriting any existing object at the same path."""
    try:
        bucket = _get_bucket(bucket_name)
        blob = bucket.blob(destination_blob_name)
        blob.upload_from_string(
            contents,
            content_type=content_type or "application/octet-stream",
        )

        return {
            "path": blob.name,
            "content_type": blob.content_type,
            "size": len(contents),
        }
    except Exception:
        logger.exception(
            "Error uploading file to bucket %s at %s",
            bucket_name,
            destination_blob_name,
        )
        return {}


def delete_file(bucket_name: str, blob_name: str) -> bool:
    try:
        bucket = _get_bucket(bucket_name)
        blob = bucket.blob(blob_name)
        blob.delete()
        return True
    except NotFound:
        logger.warning("File %s not found in bucket %s", blob_name, bucket_name)
        return False
    except Exception:
        logger.exception(
            "Error deleting file from bucket %s at %s",
            bucket_name,
            blob_name,
        )
        return False


def public_url(bucket_name: str, blob_name: str) -> str:
    return f"{STORAGE_PUBLIC_BASE_URL}/{bucket_name}/{urllib.parse.quote(blob_name)}"
