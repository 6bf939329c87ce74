"""
Integration Tests for Render Endpoints

Tests the complete render flow over HTTP: job submission, progress
polling, image retrieval, cancellation and error handling for
POST /render, POST /renderAI, GET /progress, GET /image and /jobs/{id}.
"""

import io
import os
import time

import pytest
from PIL import Image

from codegen_pipeline import CodePipeline
from raytrace_api.config import settings
from raytrace_api.main import app
from raytrace_api.middleware import UpstreamError
from raytrace_api.services.dispatcher import JobDispatcher, get_dispatcher, get_job_store
from raytrace_api.services.rate_limiter import ai_render_rate_limiter
from raytrace_api.services.scene_generator_client import (
    SceneGeneratorClient,
    get_scene_generator,
)
from render_engine.preview_renderer import PreviewRenderer

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

GENERATED_PROGRAM = (
    "```cpp\n"
    "#!/bin/sh\n"
    "printf 'PROGRESS 50\\n'\n"
    "printf 'P6\\n3 2\\n255\\n" + "\\000\\377\\000" * 6 + "' > render.ppm\n"
    "```"
)


class FakeGenerator(SceneGeneratorClient):
    """Returns canned source, or raises the given error."""

    def __init__(self, source: str = GENERATED_PROGRAM, error: Exception | None = None):
        self.source = source
        self.error = error
        self.prompts: list[str] = []

    async def generate_source(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.source


@pytest.fixture
def finished(client, wait_for):
    """Wait until a job reaches a final status and return its status body."""

    def _finished(job_id: str) -> dict:
        def done():
            body = client.get(f"/jobs/{job_id}").json()
            return body if body["status"] in ("completed", "failed", "cancelled") else None

        return wait_for(done)

    return _finished


@pytest.fixture
def slow_dispatcher():
    """Dispatcher with a slowed-down preview engine, one running job, two in flight."""
    dispatcher = JobDispatcher(
        store=get_job_store(),
        engine=PreviewRenderer(row_delay=0.02),
        pipeline=CodePipeline(work_dir=settings.WORK_DIR),
        max_concurrent=1,
        max_queued=2,
    )
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return dispatcher


@pytest.fixture
def fake_generator():
    generator = FakeGenerator()
    app.dependency_overrides[get_scene_generator] = lambda: generator
    return generator


@pytest.fixture
def generated_toolchain(monkeypatch, fake_compiler):
    """Point the code pipeline at the stand-in compiler."""
    monkeypatch.setattr(settings, "COMPILER", str(fake_compiler))
    monkeypatch.setattr(settings, "COMPILER_FLAGS", [])
    monkeypatch.setattr(settings, "SCAFFOLD_INCLUDE_DIR", "")


@pytest.mark.integration
class TestPostRenderEndpoint:
    """Tests for POST /render."""

    def test_preset_render_completes(self, client, finished):
        response = client.post("/render", json={"prompt": "checkered_spheres"})

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        assert data["message"] == "Rendering initiated"
        job_id = data["jobId"]

        status = finished(job_id)
        assert status["status"] == "completed"
        assert status["mode"] == "preset"
        assert status["label"] == "checkered_spheres"
        assert status["hasImage"] is True

        progress = client.get("/progress").json()
        assert progress == {"progress": 100, "jobId": job_id, "status": "completed"}

        image = client.get("/image")
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"
        assert image.headers["cache-control"] == "no-store"
        assert image.content.startswith(PNG_SIGNATURE)
        assert Image.open(io.BytesIO(image.content)).size == (400, 225)

    def test_custom_render_uses_settings(self, client, finished):
        response = client.post(
            "/render",
            json={
                "prompt": "custom",
                "customSettings": {
                    "imageWidth": 64,
                    "aspectRatio": 2.0,
                    "backgroundColor": "#ff0000",
                    "numSpheres": 3,
                    "numQuads": 1,
                },
            },
        )
        assert response.status_code == 202
        job_id = response.json()["jobId"]

        assert finished(job_id)["label"] == "custom"

        image = Image.open(io.BytesIO(client.get(f"/jobs/{job_id}/image").content))
        assert image.size == (64, 32)
        assert image.convert("RGB").getpixel((0, 0)) == (255, 0, 0)

    def test_unknown_preset_is_rejected(self, client):
        response = client.post("/render", json={"prompt": "teapot"})

        assert response.status_code == 400
        body = response.json()
        assert "Invalid preset 'teapot'" in body["error"]
        assert "cornell_box" in body["details"]["valid_presets"]
        assert client.get("/progress").json()["progress"] == 0
        assert get_job_store().list_jobs() == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"content": b"{not json", "headers": {"Content-Type": "application/json"}},
            {"json": {}},
            {"json": {"prompt": ""}},
            {"json": {"prompt": "custom", "customSettings": {"imageWidth": -5}}},
        ],
    )
    def test_invalid_body_is_400(self, client, kwargs):
        response = client.post("/render", **kwargs)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"
        assert client.get("/progress").json() == {"progress": 0, "jobId": None, "status": None}


@pytest.mark.integration
class TestProgressAndImage:
    """Tests for GET /progress, GET /image and job lookups."""

    def test_no_job_yet(self, client):
        assert client.get("/progress").json()["progress"] == 0

        response = client.get("/image")
        assert response.status_code == 404
        assert response.json()["error"] == "No result yet"

    def test_unknown_job_is_404(self, client):
        assert client.get("/progress", params={"jobId": "nope"}).status_code == 404
        assert client.get("/jobs/nope").status_code == 404
        assert client.get("/jobs/nope/image").status_code == 404
        assert client.delete("/jobs/nope").status_code == 404

    def test_progress_is_monotonic_while_running(self, client, slow_dispatcher, finished):
        job_id = client.post("/render", json={"prompt": "quads"}).json()["jobId"]

        seen = []
        while True:
            body = client.get("/progress", params={"jobId": job_id}).json()
            seen.append(body["progress"])
            if body["status"] in ("completed", "failed", "cancelled"):
                break
            time.sleep(0.05)

        assert seen == sorted(seen)
        assert seen[-1] == 100
        assert finished(job_id)["status"] == "completed"

    def test_image_before_completion_is_404(self, client, slow_dispatcher, finished):
        job_id = client.post("/render", json={"prompt": "quads"}).json()["jobId"]

        response = client.get(f"/jobs/{job_id}/image")
        assert response.status_code == 404
        assert job_id in response.json()["error"]

        client.delete(f"/jobs/{job_id}")
        finished(job_id)


@pytest.mark.integration
class TestCancellationAndCapacity:
    """Tests for DELETE /jobs/{id} and admission control."""

    def test_cancel_running_job(self, client, slow_dispatcher, finished, wait_for):
        job_id = client.post("/render", json={"prompt": "cornell_box"}).json()["jobId"]
        wait_for(lambda: client.get(f"/jobs/{job_id}").json()["status"] == "running")

        response = client.delete(f"/jobs/{job_id}")
        assert response.status_code == 200
        assert response.json()["cancelled"] is True

        status = finished(job_id)
        assert status["status"] == "cancelled"
        assert status["error"] == "cancelled by client"
        assert status["hasImage"] is False

        again = client.delete(f"/jobs/{job_id}").json()
        assert again == {"jobId": job_id, "cancelled": False, "status": "cancelled"}

    def test_busy_service_returns_503(self, client, slow_dispatcher, finished):
        first = client.post("/render", json={"prompt": "cornell_box"}).json()["jobId"]
        second = client.post("/render", json={"prompt": "cornell_box"}).json()["jobId"]

        response = client.post("/render", json={"prompt": "quads"})

        assert response.status_code == 503
        assert response.json()["details"] == {"active_jobs": 2, "limit": 2}

        for job_id in (first, second):
            client.delete(f"/jobs/{job_id}")
            assert finished(job_id)["status"] == "cancelled"


@pytest.mark.integration
class TestPostRenderAIEndpoint:
    """Tests for POST /renderAI."""

    def test_generated_render_completes(
        self, client, finished, fake_generator, generated_toolchain, work_dir
    ):
        response = client.post("/renderAI", json={"prompt": "a green rectangle"})

        assert response.status_code == 202
        job_id = response.json()["jobId"]
        assert fake_generator.prompts == ["a green rectangle"]

        status = finished(job_id)
        assert status["status"] == "completed", status["error"]
        assert status["mode"] == "generated"

        image = client.get("/image", params={"jobId": job_id})
        assert image.headers["content-type"] == "image/png"
        pixels = Image.open(io.BytesIO(image.content)).convert("RGB")
        assert pixels.size == (3, 2)
        assert pixels.getpixel((2, 1)) == (0, 255, 0)
        assert os.listdir(work_dir) == []

    def test_compile_error_fails_job(
        self, client, finished, fake_generator, failing_compiler, monkeypatch, work_dir
    ):
        monkeypatch.setattr(settings, "COMPILER", str(failing_compiler))

        job_id = client.post("/renderAI", json={"prompt": "broken"}).json()["jobId"]

        status = finished(job_id)
        assert status["status"] == "failed"
        assert status["error"].startswith("Compilation failed")
        assert "expected ';'" in status["error"]
        assert client.get("/image").status_code == 404
        assert os.listdir(work_dir) == []

    def test_upstream_failure_is_500_and_creates_no_job(self, client):
        generator = FakeGenerator(error=UpstreamError("Text-generation provider returned HTTP 500"))
        app.dependency_overrides[get_scene_generator] = lambda: generator

        response = client.post("/renderAI", json={"prompt": "anything"})

        assert response.status_code == 500
        assert "HTTP 500" in response.json()["error"]
        assert get_job_store().list_jobs() == []

    def test_empty_prompt_is_400(self, client, fake_generator):
        response = client.post("/renderAI", json={"prompt": ""})

        assert response.status_code == 400
        assert fake_generator.prompts == []

    def test_rate_limit_is_429(self, client, fake_generator, generated_toolchain, monkeypatch, finished):
        monkeypatch.setattr(ai_render_rate_limiter, "max_requests", 2)

        accepted = [client.post("/renderAI", json={"prompt": f"scene {i}"}) for i in range(2)]
        rejected = client.post("/renderAI", json={"prompt": "one more"})

        assert [r.status_code for r in accepted] == [202, 202]
        assert rejected.status_code == 429
        assert len(fake_generator.prompts) == 2
        for r in accepted:
            finished(r.json()["jobId"])
