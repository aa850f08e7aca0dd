from datetime import datetime, timedelta, timezone

import pytest

from operators import job_lifecycle
from operators.artifact_operator import artifact_public_url
from operators.generation_operator import (
    GenerationValidationError,
    poll_generation,
    submit_motion_generation,
)
from operators.upscale_operator import poll_upscale, submit_upscale

PROVIDER_VIDEO_URL = "https://replicate.delivery/xyz/output.mp4"
UPSCALED_URL = "https://replicate.delivery/xyz/upscaled.mp4"


def _completed_generation(db_session, fake_storage, fake_provider):
    generation = submit_motion_generation(
        db_session,
        image_url="https://cdn.example.com/characters/hana.png",
        motion_video_url="https://cdn.example.com/motions/dance.mp4",
    )
    fake_storage.remote[PROVIDER_VIDEO_URL] = b"mp4-bytes"
    fake_provider.set_state(generation.prediction_id, "succeeded", output_url=PROVIDER_VIDEO_URL)
    poll_generation(db_session, generation.id)
    db_session.refresh(generation)
    return generation


def test_upscale_lifecycle_is_independent_of_primary(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    primary_url = generation.video_url

    generation = submit_upscale(db_session, generation.id, model="topaz", resolution="4k")

    assert generation.upscale_status == "pending"
    assert generation.upscale_model == "topaz"
    assert generation.upscale_prediction_id == "job-2"
    assert generation.upscale_requested_at is not None
    assert generation.status == "completed"
    assert fake_provider.requested[-1] == ("upscale", "replicate", "topaz")
    assert fake_provider.submissions[-1] == {
        "video": primary_url,
        "target_resolution": "4k",
        "target_fps": 30,
    }

    fake_provider.set_state("job-2", "processing")
    result = poll_upscale(db_session, generation.id)
    assert result.status == "processing"

    fake_storage.remote[UPSCALED_URL] = b"upscaled-bytes"
    fake_provider.set_state("job-2", "succeeded", output_url=UPSCALED_URL)
    result = poll_upscale(db_session, generation.id)

    expected_key = f"upscaled-videos/{generation.id}-topaz.mp4"
    assert result.status == "completed"
    assert result.output == artifact_public_url(expected_key)

    db_session.refresh(generation)
    assert generation.upscaled_storage_path == expected_key
    assert generation.status == "completed"
    assert generation.video_url == primary_url


def test_default_upscale_model_input(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)

    submit_upscale(db_session, generation.id)

    assert fake_provider.submissions[-1] == {
        "video_path": generation.video_url,
        "resolution": "FHD",
        "model": "RealESRGAN_x4plus",
    }


def test_upscale_requires_completed_primary(db_session, fake_storage, fake_provider):
    generation = submit_motion_generation(
        db_session,
        image_url="https://cdn.example.com/characters/hana.png",
        motion_video_url="https://cdn.example.com/motions/dance.mp4",
    )

    with pytest.raises(GenerationValidationError):
        submit_upscale(db_session, generation.id)

    db_session.refresh(generation)
    assert generation.upscale_status is None


def test_upscale_rejected_while_in_flight(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    submit_upscale(db_session, generation.id)

    with pytest.raises(GenerationValidationError):
        submit_upscale(db_session, generation.id, model="topaz")


def test_upscale_can_be_resubmitted_after_failure(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    submit_upscale(db_session, generation.id)
    fake_provider.set_state("job-2", "failed", error="CUDA out of memory")
    result = poll_upscale(db_session, generation.id)
    assert result.status == "failed"
    assert result.error == "CUDA out of memory"

    generation = submit_upscale(db_session, generation.id, model="topaz")

    assert generation.upscale_status == "pending"
    assert generation.upscale_prediction_id == "job-3"
    assert generation.upscale_error_message is None


def test_unknown_upscale_model_is_rejected(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)

    with pytest.raises(GenerationValidationError):
        submit_upscale(db_session, generation.id, model="waifu2x")


def test_upscale_timeout_counts_from_upscale_request(db_session, fake_storage, fake_provider, monkeypatch):
    monkeypatch.setattr(job_lifecycle, "JOB_TIMEOUT_SECONDS", 60)
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    generation.created_at = datetime.now(timezone.utc) - timedelta(hours=3)
    db_session.commit()
    submit_upscale(db_session, generation.id)
    fake_provider.set_state("job-2", "processing")

    result = poll_upscale(db_session, generation.id)
    assert result.status == "processing"

    generation.upscale_requested_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    db_session.commit()

    result = poll_upscale(db_session, generation.id)
    assert result.status == "failed"
    assert result.error == "Timed out after 60s without a result"

    db_session.refresh(generation)
    assert generation.status == "completed"


def test_upscale_adoption_failure_keeps_provider_url(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    submit_upscale(db_session, generation.id)
    fake_storage.fail_downloads = True
    fake_provider.set_state("job-2", "succeeded", output_url=UPSCALED_URL)

    result = poll_upscale(db_session, generation.id)

    assert result.status == "completed"
    assert result.output == UPSCALED_URL
    db_session.refresh(generation)
    assert generation.upscaled_video_url == UPSCALED_URL
    assert generation.upscaled_storage_path is None


def test_poll_without_upscale_does_not_call_provider(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    poll_calls = list(fake_provider.poll_calls)

    result = poll_upscale(db_session, generation.id)

    assert result.status is None
    assert result.output is None
    assert fake_provider.poll_calls == poll_calls


def test_resubmitted_upscale_deletes_previous_output(db_session, fake_storage, fake_provider):
    generation = _completed_generation(db_session, fake_storage, fake_provider)
    submit_upscale(db_session, generation.id)
    fake_storage.remote[UPSCALED_URL] = b"upscaled-bytes"
    fake_provider.set_state("job-2", "succeeded", output_url=UPSCALED_URL)
    poll_upscale(db_session, generation.id)
    first_key = f"upscaled-videos/{generation.id}-real-esrgan.mp4"
    assert first_key in fake_storage.objects

    generation = submit_upscale(db_session, generation.id, model="topaz")

    assert first_key not in fake_storage.objects
    assert generation.upscaled_storage_path is None
    assert generation.upscale_status == "pending"
    assert generation.storage_path in fake_storage.objects
