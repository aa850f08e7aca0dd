import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from database.base import get_db
from database.models import MotionVideo
from handlers import motion_video_handler
from handlers.character_handler import router as character_router
from handlers.concept_image_handler import router as concept_image_router
from handlers.generation_handler import router as generation_router
from handlers.health_handler import router as health_router
from handlers.motion_video_handler import router as motion_video_router
from handlers.upscale_handler import router as upscale_router
from operators import download_operator
from utils.higgsfield_provider import MotionPreset
from utils.replicate_provider import ProviderError

PROVIDER_VIDEO_URL = "https://replicate.delivery/xyz/output.mp4"


class _FakeToolkit:
    is_loaded = True

    def __init__(self):
        self.merged = []

    def merge_video_with_music(self, video_bytes, music_path):
        self.merged.append((video_bytes, music_path))
        return b"merged:" + video_bytes


@pytest.fixture
def toolkit():
    return _FakeToolkit()


@pytest.fixture
def client(db_session, fake_storage, fake_provider, toolkit):
    app = FastAPI()
    app.include_router(health_router)
    app.include_router(generation_router)
    app.include_router(upscale_router)
    app.include_router(motion_video_router)
    app.include_router(concept_image_router)
    app.include_router(character_router)
    app.state.media_toolkit = toolkit

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client


def _create_video(client):
    response = client.post(
        "/generations/video",
        json={
            "image_url": "https://cdn.example.com/characters/hana.png",
            "motion_video_url": "https://cdn.example.com/motions/dance.mp4",
            "member_id": "hana",
            "music_id": "1",
        },
    )
    assert response.status_code == 200
    return response.json()["generation"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_submit_and_poll_over_http(client, fake_storage, fake_provider):
    generation = _create_video(client)
    assert generation["status"] == "pending"
    assert generation["music_title"] == "Yum"

    fake_provider.set_state("job-1", "processing")
    response = client.get(f"/generations/{generation['id']}/status")
    assert response.status_code == 200
    assert response.json()["status"] == "processing"

    fake_storage.remote[PROVIDER_VIDEO_URL] = b"mp4"
    fake_provider.set_state("job-1", "succeeded", output_url=PROVIDER_VIDEO_URL)
    body = client.get(f"/generations/{generation['id']}/status").json()

    assert body["status"] == "completed"
    assert body["output"].endswith(f"generated-videos/{generation['id']}.mp4")
    assert body["provider_status"] == "succeeded"


def test_validation_errors_map_to_400(client):
    response = client.post(
        "/generations/video",
        json={"image_url": "https://cdn.example.com/characters/hana.png"},
    )
    assert response.status_code == 400

    response = client.post(
        "/generations/video",
        json={"image_url": "https://cdn/char.png", "motion_video_id": "not-a-uuid"},
    )
    assert response.status_code == 400


def test_provider_rejection_maps_to_502(client, fake_provider):
    fake_provider.reject_submit = True

    response = client.post(
        "/generations/video",
        json={
            "image_url": "https://cdn.example.com/characters/hana.png",
            "motion_video_url": "https://cdn.example.com/motions/dance.mp4",
        },
    )

    assert response.status_code == 502
    assert client.get("/generations").json()["total"] == 0


def test_poll_provider_outage_maps_to_502(client, fake_provider):
    generation = _create_video(client)
    fake_provider.poll_error = ProviderError("Replicate request failed: timed out")

    response = client.get(f"/generations/{generation['id']}/status")

    assert response.status_code == 502
    assert client.get(f"/generations/{generation['id']}").json()["status"] == "pending"


def test_unknown_generation_is_404(client):
    missing = "00000000-0000-0000-0000-000000000000"
    assert client.get(f"/generations/{missing}").status_code == 404
    assert client.get(f"/generations/{missing}/status").status_code == 404
    assert client.delete(f"/generations/{missing}").status_code == 404


def test_upscale_over_http(client, fake_storage, fake_provider):
    generation = _create_video(client)
    response = client.post(f"/generations/{generation['id']}/upscale", json={})
    assert response.status_code == 400

    fake_storage.remote[PROVIDER_VIDEO_URL] = b"mp4"
    fake_provider.set_state("job-1", "succeeded", output_url=PROVIDER_VIDEO_URL)
    client.get(f"/generations/{generation['id']}/status")

    response = client.post(
        f"/generations/{generation['id']}/upscale",
        json={"model": "topaz", "resolution": "4k"},
    )
    assert response.status_code == 200
    assert response.json()["generation"]["upscale_status"] == "pending"

    body = client.get(f"/generations/{generation['id']}/upscale").json()
    assert body["status"] == "processing"


def test_patch_and_list(client, db_session):
    generation = _create_video(client)
    motion = MotionVideo(name="dance", storage_path="videos/1-dance.mp4", duration=8.0)
    db_session.add(motion)
    db_session.commit()

    response = client.patch(
        f"/generations/{generation['id']}",
        json={"music_id": "3", "motion_video_id": str(motion.id)},
    )
    assert response.status_code == 200
    assert response.json()["generation"]["music_title"] == "I'm lovin' it"

    listed = client.get("/generations").json()
    assert listed["total"] == 1
    assert listed["generations"][0]["motion_video_name"] == "dance"


def test_upload_result_over_http(client):
    response = client.post(
        "/generations/upload",
        data={"member_id": "hana", "duration": "12"},
        files={"file": ("clip.mp4", b"mp4", "video/mp4")},
    )
    assert response.status_code == 400

    response = client.post(
        "/generations/upload",
        data={"member_id": "hana"},
        files={"file": ("still.png", b"png", "image/png")},
    )
    assert response.status_code == 200
    generation = response.json()["generation"]
    assert generation["provider"] == "upload"
    assert generation["status"] == "completed"


def test_download_merges_music(client, fake_storage, fake_provider, toolkit, monkeypatch):
    generation = _create_video(client)
    fake_storage.remote[PROVIDER_VIDEO_URL] = b"mp4"
    fake_provider.set_state("job-1", "succeeded", output_url=PROVIDER_VIDEO_URL)
    client.get(f"/generations/{generation['id']}/status")
    monkeypatch.setattr(download_operator, "fetch_remote_bytes", lambda url: b"stored-mp4")

    response = client.get(f"/generations/{generation['id']}/download")

    assert response.status_code == 200
    assert response.content == b"merged:stored-mp4"
    assert response.headers["content-type"] == "video/mp4"
    assert "yum.mp4" in response.headers["content-disposition"]
    assert toolkit.merged[0][1].name == "Yum.mp3"


def test_motion_video_endpoints(client):
    def upload(name):
        return client.post(
            "/motion-videos",
            data={"duration": "6.5"},
            files={"video": (name, b"mp4", "video/mp4")},
        )

    first = upload("first.mp4").json()["video"]
    assert first["name"] == "first"

    response = client.delete(f"/motion-videos/{first['id']}")
    assert response.status_code == 409

    second = upload("second.mp4").json()["video"]
    response = client.patch(f"/motion-videos/{second['id']}", json={"name": "Renamed"})
    assert response.json()["name"] == "Renamed"

    assert client.delete(f"/motion-videos/{first['id']}").status_code == 200
    assert [v["id"] for v in client.get("/motion-videos").json()["videos"]] == [second["id"]]


def test_concept_image_endpoints(client):
    response = client.post(
        "/concept-images",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400

    response = client.post(
        "/concept-images",
        data={"name": "Beach"},
        files={"file": ("beach.jpg", b"jpg", "image/jpeg")},
    )
    image = response.json()["concept_image"]
    assert image["name"] == "Beach"

    assert client.delete(f"/concept-images/{image['id']}").status_code == 200
    assert client.get("/concept-images").json()["concept_images"] == []


def test_character_endpoints(client):
    response = client.post("/characters", json={"id": "rumi", "name": "Rumi"})
    assert response.status_code == 200

    response = client.post(
        "/characters/rumi/images",
        files={"image": ("rumi.mp4", b"mp4", "video/mp4")},
    )
    assert response.status_code == 400
    response = client.post(
        "/characters/nobody/images",
        files={"image": ("x.png", b"png", "image/png")},
    )
    assert response.status_code == 404

    first = client.post(
        "/characters/rumi/images",
        files={"image": ("rumi.png", b"png", "image/png")},
    ).json()["image"]
    second = client.post(
        "/characters/rumi/images",
        files={"image": ("rumi.png", b"png", "image/png")},
    ).json()["image"]
    assert [first["variant_id"], second["variant_id"]] == ["default", "02"]

    response = client.patch("/characters/rumi", json={"name": "  "})
    assert response.status_code == 400
    response = client.patch("/characters/rumi", json={"description": " Main vocal "})
    assert response.json()["description"] == "Main vocal"
    assert client.patch("/characters/nobody", json={"name": "X"}).status_code == 404

    assert client.delete(f"/characters/images/{first['id']}").status_code == 200
    assert client.delete(f"/characters/images/{second['id']}").status_code == 409
    assert client.delete(f"/characters/images/{first['id']}").status_code == 404

    listed = client.get("/characters").json()["characters"]
    assert [c["id"] for c in listed] == ["rumi"]
    assert [i["variant_id"] for i in listed[0]["images"]] == ["02"]


def test_motion_presets_expose_start_end_frame(client, monkeypatch):
    monkeypatch.setattr(
        motion_video_handler,
        "list_motions",
        lambda: [
            MotionPreset(id="m1", name="Spin", description="", start_end_frame=True),
            MotionPreset(id="m2", name="Wave", description="hands up"),
        ],
    )

    presets = client.get("/motion-presets").json()["presets"]

    assert presets[0]["start_end_frame"] is True
    assert presets[0]["description"] is None
    assert presets[1]["start_end_frame"] is False
