import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handlers.character_handler import router as character_router
from handlers.concept_image_handler import router as concept_image_router
from handlers.generation_handler import router as generation_router
from handlers.health_handler import router as health_router
from handlers.motion_video_handler import router as motion_video_router
from handlers.upscale_handler import router as upscale_router
from utils.video_utils import MediaToolkit

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


GENERATION_JOBS_LOG_FILE = os.getenv(
    "GENERATION_JOBS_LOG_FILE", "backend/log/generation_jobs.log"
).strip()
GENERATION_JOBS_LOG_LEVEL = os.getenv("GENERATION_JOBS_LOG_LEVEL", "INFO").strip()
if GENERATION_JOBS_LOG_FILE:
    jobs_log_path = Path(GENERATION_JOBS_LOG_FILE)
    if not jobs_log_path.is_absolute():
        jobs_log_path = ROOT_DIR / jobs_log_path
    for logger_name in (
        "operators.job_lifecycle",
        "operators.generation_operator",
        "operators.upscale_operator",
        "operators.artifact_operator",
        "handlers.generation_handler",
    ):
        _attach_file_handler(logger_name, jobs_log_path, level_name=GENERATION_JOBS_LOG_LEVEL)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:5174",
    ).split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ffmpeg is resolved on the first download, not at startup.
    app.state.media_toolkit = MediaToolkit()
    yield


app = FastAPI(title="Short-form Studio Backend", lifespan=lifespan)


app.include_router(health_router)
app.include_router(generation_router)
app.include_router(upscale_router)
app.include_router(motion_video_router)
app.include_router(concept_image_router)
app.include_router(character_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
