"""
Generic lifecycle for provider-backed generation jobs.

Motion video generation, image generation and upscaling all run the same
machine: pending -> processing -> {completed, failed}. A ``JobKind`` tells the
machine which provider to call, which columns of the ``Generation`` row hold
the job's state and where its output is adopted into storage.

Polling is driven by the client. Each poll reads the row, asks the provider
for the job state, applies at most one forward transition and returns the
freshly computed status/output/error whether or not anything was written.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm import Session as DBSession

from database.models import Generation
from models.generation_models import ACTIVE_STATUSES, TERMINAL_STATUSES, GenerationStatus
from operators.artifact_operator import ArtifactStoreError, adopt_artifact
from operators.provider_operator import ProviderClient, ProviderJob
from utils.replicate_provider import ProviderError

logger = logging.getLogger(__name__)

JOB_TIMEOUT_SECONDS = int(os.getenv("GENERATION_JOB_TIMEOUT_SECONDS", "1800"))

_STATUS_RANK = {
    GenerationStatus.PENDING.value: 0,
    GenerationStatus.PROCESSING.value: 1,
    GenerationStatus.COMPLETED.value: 2,
    GenerationStatus.FAILED.value: 2,
}


@dataclass(frozen=True)
class JobFields:
    """Names of the Generation columns that carry one job's state."""

    status: str
    job_id: str
    output_url: str
    storage_path: str
    error: str
    started_at: str


@dataclass(frozen=True)
class JobKind:
    name: str
    fields: JobFields
    resolve_client: Callable[[Generation], ProviderClient]
    storage_key: Callable[[Generation], str]
    content_type: str


@dataclass
class JobPollResult:
    status: str | None
    output: str | None
    error: str | None
    provider_status: str | None = None


def map_provider_state(state: str) -> str:
    normalized = str(state or "").strip().lower()
    if normalized == "succeeded":
        return GenerationStatus.COMPLETED.value
    if normalized in {"failed", "canceled"}:
        return GenerationStatus.FAILED.value
    return GenerationStatus.PROCESSING.value


def can_transition(current: str | None, new: str) -> bool:
    if current == new:
        return True
    if current is None or current in TERMINAL_STATUSES:
        return False
    return _STATUS_RANK[new] > _STATUS_RANK[current]


def submit_job(
    db: DBSession,
    record: Generation,
    kind: JobKind,
    job_input: dict[str, Any],
    is_new: bool = True,
) -> Generation:
    """
    Submit to the provider, then persist the record as pending.

    Provider errors propagate before anything is written, so a rejected
    submission never leaves a pending row behind.
    """
    client = kind.resolve_client(record)
    job_id = client.submit(job_input)
    if not job_id:
        raise ProviderError(f"{client.name} did not return a job id")

    fields = kind.fields
    setattr(record, fields.status, GenerationStatus.PENDING.value)
    setattr(record, fields.job_id, job_id)
    setattr(record, fields.output_url, None)
    setattr(record, fields.storage_path, None)
    setattr(record, fields.error, None)
    if fields.started_at != "created_at":
        setattr(record, fields.started_at, datetime.now(timezone.utc))

    if is_new:
        db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(
        "Submitted %s job %s to %s for generation %s",
        kind.name,
        job_id,
        client.name,
        record.id,
    )
    return record


def poll_job(db: DBSession, record: Generation, kind: JobKind) -> JobPollResult:
    fields = kind.fields
    status = getattr(record, fields.status)
    job_id = getattr(record, fields.job_id)

    if not job_id:
        return _snapshot(record, kind)
    if status == GenerationStatus.FAILED.value:
        return _snapshot(record, kind)
    if status == GenerationStatus.COMPLETED.value and getattr(record, fields.storage_path):
        return _snapshot(record, kind)

    before = _state_tuple(record, fields)
    client = kind.resolve_client(record)
    try:
        job = client.poll(job_id)
    except ProviderError:
        if status == GenerationStatus.COMPLETED.value:
            # Adoption retry only; the persisted result is still valid.
            logger.warning(
                "Could not re-query %s job %s for generation %s; keeping provider URL",
                kind.name,
                job_id,
                record.id,
            )
            return _snapshot(record, kind)
        if _timed_out(record, kind):
            _fail(record, kind, _timeout_message())
            _commit_if_changed(db, record, fields, before)
            return _snapshot(record, kind)
        logger.warning(
            "Polling %s job %s for generation %s failed; keeping status %s",
            kind.name,
            job_id,
            record.id,
            status,
        )
        raise

    new_status = map_provider_state(job.state)
    if new_status == GenerationStatus.COMPLETED.value:
        _complete(record, kind, job)
    elif new_status == GenerationStatus.FAILED.value:
        if can_transition(status, new_status):
            _fail(record, kind, job.error or f"{kind.name} job {job.state}")
    elif status in ACTIVE_STATUSES:
        if _timed_out(record, kind):
            _fail(record, kind, _timeout_message())
        elif can_transition(status, new_status):
            setattr(record, fields.status, new_status)

    _commit_if_changed(db, record, fields, before)
    return _snapshot(record, kind, provider_status=job.state)


def _complete(record: Generation, kind: JobKind, job: ProviderJob) -> None:
    fields = kind.fields
    status = getattr(record, fields.status)
    if not can_transition(status, GenerationStatus.COMPLETED.value):
        return

    if not job.output_url:
        if status in ACTIVE_STATUSES:
            _fail(record, kind, "Provider reported success without an output")
        return

    setattr(record, fields.status, GenerationStatus.COMPLETED.value)
    setattr(record, fields.error, None)
    try:
        stored = adopt_artifact(job.output_url, kind.storage_key(record), kind.content_type)
    except (ArtifactStoreError, OSError):
        logger.exception(
            "Failed to adopt %s output for generation %s; falling back to provider URL",
            kind.name,
            record.id,
        )
        setattr(record, fields.output_url, job.output_url)
        return

    setattr(record, fields.output_url, stored.public_url)
    setattr(record, fields.storage_path, stored.storage_path)
    logger.info(
        "Adopted %s output for generation %s into %s",
        kind.name,
        record.id,
        stored.storage_path,
    )


def _fail(record: Generation, kind: JobKind, message: str) -> None:
    fields = kind.fields
    setattr(record, fields.status, GenerationStatus.FAILED.value)
    setattr(record, fields.error, message)
    logger.info("%s job for generation %s failed: %s", kind.name, record.id, message)


def _timed_out(record: Generation, kind: JobKind) -> bool:
    if JOB_TIMEOUT_SECONDS <= 0:
        return False
    started_at = getattr(record, kind.fields.started_at)
    if started_at is None:
        return False
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    elapsed = (datetime.now(timezone.utc) - started_at).total_seconds()
    return elapsed > JOB_TIMEOUT_SECONDS


def _timeout_message() -> str:
    return f"Timed out after {JOB_TIMEOUT_SECONDS}s without a result"


def _state_tuple(record: Generation, fields: JobFields) -> tuple:
    return (
        getattr(record, fields.status),
        getattr(record, fields.output_url),
        getattr(record, fields.storage_path),
        getattr(record, fields.error),
    )


def _commit_if_changed(db: DBSession, record: Generation, fields: JobFields, before: tuple) -> None:
    if _state_tuple(record, fields) == before:
        return
    db.commit()
    db.refresh(record)


def _snapshot(
    record: Generation,
    kind: JobKind,
    provider_status: str | None = None,
) -> JobPollResult:
    fields = kind.fields
    return JobPollResult(
        status=getattr(record, fields.status),
        output=getattr(record, fields.output_url),
        error=getattr(record, fields.error),
        provider_status=provider_status,
    )
