from __future__ import annotations

import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
from operators import artifact_operator, generation_operator, upscale_operator
from operators.artifact_operator import ArtifactStoreError
from operators.provider_operator import ProviderJob
from utils.replicate_provider import ProviderError


class FakeStorage:
    """In-memory stand-in for the GCS bucket and the provider CDN."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.remote: dict[str, bytes] = {}
        self.upload_calls = 0
        self.fail_downloads = False
        self.fail_deletes = False

    def upload_file(self, bucket_name, contents, destination_blob_name, content_type=None):
        self.upload_calls += 1
        self.objects[destination_blob_name] = contents
        return {
            "path": destination_blob_name,
            "content_type": content_type,
            "size": len(contents),
        }

    def delete_file(self, bucket_name, blob_name):
        if self.fail_deletes:
            return False
        return self.objects.pop(blob_name, None) is not None

    def fetch_remote_bytes(self, url):
        if self.fail_downloads or url not in self.remote:
            raise ArtifactStoreError(f"Failed to download {url}: 503")
        return self.remote[url]


class FakeProviderClient:
    name = "fake"

    def __init__(self):
        self._ids = itertools.count(1)
        self.submissions: list[dict] = []
        self.jobs: dict[str, ProviderJob] = {}
        self.poll_calls: list[str] = []
        self.reject_submit = False
        self.poll_error: ProviderError | None = None

    def submit(self, job_input):
        if self.reject_submit:
            raise ProviderError("Replicate request failed (422): invalid input", status_code=422)
        job_id = f"job-{next(self._ids)}"
        self.submissions.append(job_input)
        self.jobs[job_id] = ProviderJob(state="starting")
        return job_id

    def poll(self, job_id):
        self.poll_calls.append(job_id)
        if self.poll_error is not None:
            raise self.poll_error
        return self.jobs[job_id]

    def set_state(self, job_id, state, output_url=None, error=None):
        self.jobs[job_id] = ProviderJob(state=state, output_url=output_url, error=error)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(artifact_operator, "upload_file", storage.upload_file)
    monkeypatch.setattr(artifact_operator, "delete_file", storage.delete_file)
    monkeypatch.setattr(artifact_operator, "fetch_remote_bytes", storage.fetch_remote_bytes)
    return storage


@pytest.fixture
def fake_provider(monkeypatch):
    client = FakeProviderClient()
    requested: list[tuple] = []

    def _get_provider_client(job_kind, provider="replicate", model=None):
        requested.append((job_kind, provider, model))
        return client

    monkeypatch.setattr(generation_operator, "get_provider_client", _get_provider_client)
    monkeypatch.setattr(upscale_operator, "get_provider_client", _get_provider_client)
    client.requested = requested
    return client
