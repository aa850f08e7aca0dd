from __future__ import annotations

import http.client
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from utils.replicate_provider import ProviderError


HIGGSFIELD_BASE_URL = os.getenv("HIGGSFIELD_BASE_URL", "https://platform.higgsfield.ai")
DEFAULT_TIMEOUT_SECONDS = int(os.getenv("HIGGSFIELD_TIMEOUT_SECONDS", "60"))
DEFAULT_DOP_MODEL = os.getenv("HIGGSFIELD_DOP_MODEL", "dop-preview")


@dataclass
class HiggsfieldJob:
    id: str
    status: str
    result_url: str | None = None


@dataclass
class HiggsfieldJobSet:
    id: str
    jobs: list[HiggsfieldJob]

    @property
    def first_job(self) -> HiggsfieldJob | None:
        return self.jobs[0] if self.jobs else None


@dataclass
class MotionPreset:
    id: str
    name: str
    description: str = ""
    preview_url: str | None = None
    start_end_frame: bool = False


def create_image_to_video(
    image_url: str,
    motion_id: str,
    prompt: str | None = None,
    model: str | None = None,
    strength: float | None = None,
) -> HiggsfieldJobSet:
    payload = {
        "params": {
            "model": model or DEFAULT_DOP_MODEL,
            "prompt": prompt or "A person performing motion",
            "input_images": [{"type": "image_url", "image_url": image_url}],
            "motions": [{"id": motion_id, "strength": strength or 0.5}],
        }
    }
    response = _request_json(
        method="POST",
        url=f"{HIGGSFIELD_BASE_URL}/v1/image2video/dop",
        payload=payload,
    )
    return _parse_job_set(response)


def get_job_set(job_set_id: str) -> HiggsfieldJobSet:
    job_set_path = urllib.parse.quote(job_set_id.strip(), safe="")
    response = _request_json(
        method="GET",
        url=f"{HIGGSFIELD_BASE_URL}/v1/job-sets/{job_set_path}",
    )
    return _parse_job_set(response)


def list_motions() -> list[MotionPreset]:
    response = _request_json(method="GET", url=f"{HIGGSFIELD_BASE_URL}/v1/motions")
    if not isinstance(response, list):
        raise ProviderError("Unexpected motions payload from Higgsfield API")

    presets: list[MotionPreset] = []
    for item in response:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        presets.append(
            MotionPreset(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                description=str(item.get("description") or ""),
                preview_url=item.get("preview_url"),
                start_end_frame=bool(item.get("start_end_frame", False)),
            )
        )
    return presets


def _parse_job_set(payload: Any) -> HiggsfieldJobSet:
    if not isinstance(payload, dict) or not payload.get("id"):
        raise ProviderError("Higgsfield response did not include a job set id")

    jobs: list[HiggsfieldJob] = []
    for job in payload.get("jobs") or []:
        if not isinstance(job, dict):
            continue
        results = job.get("results") or {}
        raw = results.get("raw") if isinstance(results, dict) else None
        result_url = raw.get("url") if isinstance(raw, dict) else None
        jobs.append(
            HiggsfieldJob(
                id=str(job.get("id") or ""),
                status=str(job.get("status") or "queued"),
                result_url=result_url,
            )
        )
    return HiggsfieldJobSet(id=str(payload["id"]), jobs=jobs)


def _request_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None = None,
) -> Any:
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")

    request = urllib.request.Request(url=url, data=data, method=method.upper())
    api_key, secret = _higgsfield_credentials()
    request.add_header("hf-api-key", api_key)
    request.add_header("hf-secret", secret)
    request.add_header("Accept", "application/json")
    if payload is not None:
        request.add_header("Content-Type", "application/json")

    try:
        with urllib.request.urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        details = ""
        try:
            details = exc.read().decode("utf-8", errors="ignore")
        except Exception:
            details = ""
        raise ProviderError(
            f"Higgsfield request failed ({exc.code}): {details[:200]}",
            status_code=exc.code,
        ) from exc
    except urllib.error.URLError as exc:
        raise ProviderError(f"Higgsfield request failed: {exc.reason}") from exc
    except (http.client.HTTPException, OSError, ValueError) as exc:
        raise ProviderError(f"Higgsfield request failed: {exc!r}") from exc


def _higgsfield_credentials() -> tuple[str, str]:
    api_key = os.getenv("HIGGSFIELD_API_KEY", "").strip()
    secret = os.getenv("HIGGSFIELD_SECRET", "").strip()
    if not api_key or not secret:
        raise ProviderError("HIGGSFIELD_API_KEY and HIGGSFIELD_SECRET are required")
    return api_key, secret
