import asyncio
import io
import time

import pytest
from fastapi import HTTPException, UploadFile
from fastapi.testclient import TestClient

from backend import config
from backend.app import app
from backend.jobs import JobManager, JobStatus
from backend.routers import terrain as terrain_router


@pytest.fixture
def manager(monkeypatch):
    fresh = JobManager()
    monkeypatch.setattr(terrain_router, "job_manager", fresh)
    return fresh


def _wait_for(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/terrain/status/{job_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


def test_root():
    with TestClient(app) as client:
        assert client.get("/").json()["status"] == "ok"


def test_unknown_job_is_404(manager):
    with TestClient(app) as client:
        assert client.get("/api/terrain/status/nope").status_code == 404


def test_model_before_combine_is_404(manager):
    with TestClient(app) as client:
        assert client.get("/api/terrain/model.glb").status_code == 404
        state = client.get("/api/terrain/state").json()
        assert state["terrain"] is None and state["rotation"] == 0


def test_combine_rotate_and_download(manager, dsm_bytes, imagery_bytes):
    files = {"dsm": ("dsm.tif", dsm_bytes, "image/tiff"),
             "imagery": ("imagery.tif", imagery_bytes, "image/tiff")}
    with TestClient(app) as client:
        job = client.post("/api/terrain/combine", files=files).json()
        assert job["kind"] == "combine"
        body = _wait_for(client, job["job_id"])
        assert body["status"] == "completed"
        assert body["result"]["terrain"]["vertices"] == 9

        rotate = client.post("/api/terrain/rotate").json()
        body = _wait_for(client, rotate["job_id"])
        assert body["result"]["rotation"] == 90

        state = client.get("/api/terrain/state").json()
        assert state["version"] == 2
        assert state["terrain"]["rotation"] == 90

        model = client.get("/api/terrain/model.glb")
        assert model.status_code == 200
        assert model.content[:4] == b"glTF"
        assert model.headers["x-terrain-version"] == "2"
        assert client.get("/api/terrain/texture.png").status_code == 200


def test_failed_combine_reports_stage(manager, dsm_bytes):
    files = {"dsm": ("dsm.tif", dsm_bytes, "image/tiff"),
             "imagery": ("imagery.tif", b"junk", "image/tiff")}
    with TestClient(app) as client:
        job = client.post("/api/terrain/combine", files=files).json()
        body = _wait_for(client, job["job_id"])
    assert body["status"] == JobStatus.failed.value
    assert body["stage"] == "decode"
    assert "imagery.tif" in body["message"]


def test_empty_upload_is_rejected(manager, dsm_bytes):
    files = {"dsm": ("dsm.tif", dsm_bytes, "image/tiff"),
             "imagery": ("imagery.tif", b"", "image/tiff")}
    with TestClient(app) as client:
        assert client.post("/api/terrain/combine", files=files).status_code == 400


def test_oversized_upload_is_rejected(manager, monkeypatch, dsm_bytes, imagery_bytes):
    monkeypatch.setattr(config, "MAX_UPLOAD_MB", 1e-6)
    files = {"dsm": ("dsm.tif", dsm_bytes, "image/tiff"),
             "imagery": ("imagery.tif", imagery_bytes, "image/tiff")}
    with TestClient(app) as client:
        response = client.post("/api/terrain/combine", files=files)
    assert response.status_code == 413
    assert "DSM" in response.json()["detail"]
    assert manager.jobs == {}


def test_upload_without_declared_size_is_cut_off_while_reading(monkeypatch):
    monkeypatch.setattr(config, "MAX_UPLOAD_MB", 1 / 1024)
    upload = UploadFile(file=io.BytesIO(b"x" * 4096), filename="dsm.tif")
    assert upload.size is None
    with pytest.raises(HTTPException) as exc:
        asyncio.run(terrain_router._read_upload(upload, "DSM"))
    assert exc.value.status_code == 413


def test_finished_jobs_are_pruned_oldest_first():
    jobs = JobManager(max_jobs=2)
    first = jobs.create_job("combine")
    second = jobs.create_job("rotate")
    first.status = JobStatus.completed
    second.status = JobStatus.failed

    third = jobs.create_job("rotate")
    assert list(jobs.jobs) == [second.id, third.id]

    running = jobs.create_job("combine")
    running.status = JobStatus.running
    latest = jobs.create_job("rotate")
    assert first.id not in jobs.jobs and second.id not in jobs.jobs
    assert set(jobs.jobs) == {third.id, running.id, latest.id}
