"""Utilities for video processing operations."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

MERGE_TIMEOUT_SECONDS = int(os.getenv("FFMPEG_MERGE_TIMEOUT_SECONDS", "120"))


class MediaToolkitError(RuntimeError):
    pass


class MediaToolkit:
    """
    Lazily resolved handle on the ffmpeg binary.

    The binary is located and probed on first use only. Concurrent first
    callers share a single resolution; a failed resolution is not cached so
    a later call can retry once ffmpeg is installed.
    """

    def __init__(self, ffmpeg_bin: str | None = None):
        self._ffmpeg_bin = ffmpeg_bin or os.getenv("FFMPEG_BIN", "ffmpeg")
        self._resolved: str | None = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._resolved is not None

    def ffmpeg(self) -> str:
        if self._resolved is not None:
            return self._resolved

        with self._lock:
            if self._resolved is None:
                self._resolved = self._resolve()
        return self._resolved

    def _resolve(self) -> str:
        path = shutil.which(self._ffmpeg_bin)
        if not path:
            raise MediaToolkitError(f"ffmpeg binary not found: {self._ffmpeg_bin}")

        try:
            result = subprocess.run(
                [path, "-version"],
                capture_output=True,
                timeout=15,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise MediaToolkitError(f"ffmpeg could not be started: {exc}") from exc

        if result.returncode != 0:
            raise MediaToolkitError("ffmpeg -version exited with an error")

        logger.info("Resolved ffmpeg at %s", path)
        return path

    def merge_video_with_music(self, video_bytes: bytes, music_path: str | Path) -> bytes:
        """
        Replace a video's audio track with a music file.

        The video stream is copied as is, the original audio is dropped and
        the output stops at the shorter of the two streams.
        """
        music_path = Path(music_path)
        if not music_path.is_file():
            raise MediaToolkitError(f"Music file not found: {music_path}")

        ffmpeg_bin = self.ffmpeg()

        with tempfile.TemporaryDirectory() as tmpdir:
            input_path = Path(tmpdir) / "input.mp4"
            output_path = Path(tmpdir) / "output.mp4"
            input_path.write_bytes(video_bytes)

            cmd = [
                ffmpeg_bin,
                "-y",
                "-i",
                str(input_path),
                "-i",
                str(music_path),
                "-c:v",
                "copy",
                "-c:a",
                "aac",
                "-map",
                "0:v:0",
                "-map",
                "1:a:0",
                "-shortest",
                str(output_path),
            ]

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    timeout=MERGE_TIMEOUT_SECONDS,
                )
            except subprocess.TimeoutExpired as exc:
                raise MediaToolkitError("ffmpeg merge timed out") from exc

            if result.returncode != 0 or not output_path.exists():
                logger.error(
                    "ffmpeg merge failed: %s",
                    result.stderr.decode(errors="ignore")[-2000:],
                )
                raise MediaToolkitError("ffmpeg merge failed")

            return output_path.read_bytes()
