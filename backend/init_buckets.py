import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from utils.gcs_utils import init_bucket

load_dotenv(Path(__file__).resolve().parents[1] / ".env")
logger = logging.getLogger(__name__)


def init_buckets() -> bool:
    asset_bucket_name = os.getenv("GCS_BUCKET", "shortform-studio")
    cors_origins = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
        if origin.strip()
    ]

    logger.info("Initializing bucket %s", asset_bucket_name)
    if not init_bucket(asset_bucket_name, cors_origins=cors_origins):
        logger.error("Bucket %s could not be initialized", asset_bucket_name)
        return False

    logger.info("Bucket %s ready with CORS for %s", asset_bucket_name, ", ".join(cors_origins))
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    raise SystemExit(0 if init_buckets() else 1)
