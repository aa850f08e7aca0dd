from __future__ import annotations

import http.client
import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any


REPLICATE_API_BASE_URL = os.getenv("REPLICATE_API_BASE_URL", "https://api.replicate.com/v1")
DEFAULT_TIMEOUT_SECONDS = int(os.getenv("REPLICATE_TIMEOUT_SECONDS", "60"))


class ProviderError(RuntimeError):
    """Raised when a generation provider rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class Prediction:
    id: str
    status: str
    output: Any = None
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Prediction:
        prediction_id = str(payload.get("id") or "")
        if not prediction_id:
            raise ProviderError("Replicate response did not include a prediction id")
        error = payload.get("error")
        return cls(
            id=prediction_id,
            status=str(payload.get("status") or "starting"),
            output=payload.get("output"),
            error=str(error) if error else None,
        )


def create_prediction(
    version: str,
    model_input: dict[str, Any],
    token: str | None = None,
) -> Prediction:
    if not version.strip():
        raise ValueError("Replicate model version is required")

    payload = _request_json(
        method="POST",
        url=f"{REPLICATE_API_BASE_URL}/predictions",
        payload={"version": version.strip(), "input": model_input},
        token=token,
    )
    return Prediction.from_payload(payload)


def get_prediction(prediction_id: str, token: str | None = None) -> Prediction:
    if not prediction_id.strip():
        raise ValueError("Prediction id is required")

    prediction_path = urllib.parse.quote(prediction_id.strip(), safe="")
    payload = _request_json(
        method="GET",
        url=f"{REPLICATE_API_BASE_URL}/predictions/{prediction_path}",
        token=token,
    )
    return Prediction.from_payload(payload)


def first_output_url(output: Any) -> str | None:
    """Replicate returns either a single URL or a list of URLs."""
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list):
        for item in output:
            if isinstance(item, str) and item:
                return item
    return None


def _request_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None = None,
    token: str | None = None,
) -> dict[str, Any]:
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")

    request = urllib.request.Request(url=url, data=data, method=method.upper())
    request.add_header("Authorization", f"Bearer {token or _replicate_token()}")
    if payload is not None:
        request.add_header("Content-Type", "application/json")

    try:
        with urllib.request.urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
            body = response.read().decode("utf-8")
            parsed = json.loads(body)
            if isinstance(parsed, dict):
                return parsed
            raise ProviderError("Unexpected non-object response from Replicate API")
    except urllib.error.HTTPError as exc:
        details = ""
        try:
            details = exc.read().decode("utf-8", errors="ignore")
        except Exception:
            details = ""
        raise ProviderError(
            f"Replicate request failed ({exc.code}): {details[:200]}",
            status_code=exc.code,
        ) from exc
    except urllib.error.URLError as exc:
        raise ProviderError(f"Replicate request failed: {exc.reason}") from exc
    except (http.client.HTTPException, OSError, ValueError) as exc:
        raise ProviderError(f"Replicate request failed: {exc!r}") from exc


def _replicate_token() -> str:
    raw_token = os.getenv("REPLICATE_API_TOKEN", "") or os.getenv("REPLICATE_TOKEN", "")
    token = raw_token.strip().strip('"').strip("'")
    if not token:
        raise ProviderError("REPLICATE_API_TOKEN is not set")
    return token
