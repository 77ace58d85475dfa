import asyncio
import logging

from fastapi import APIRouter, File, HTTPException, Response, UploadFile

from backend import config
from backend.jobs import Job, job_manager, summarize_terrain
from backend.models import JobResponse, SessionState
from terrafuse.presenter import encode_glb, encode_png

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/terrain", tags=["terrain"])

# Keep a reference so background jobs are not garbage-collected mid-run
_background_tasks: set = set()

_READ_CHUNK = 1024 * 1024


def _spawn(coro) -> None:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


def _job_response(job: Job) -> JobResponse:
    return JobResponse(
        job_id=job.id,
        kind=job.kind,
        status=job.status.value,
        progress=job.progress,
        message=job.message,
        stage=job.stage,
        result=job.result,
    )


async def _read_upload(upload: UploadFile, label: str) -> bytes:
    """Read an upload, refusing it once it passes MAX_UPLOAD_MB."""
    limit = int(config.MAX_UPLOAD_MB * 1024 * 1024)
    too_large = HTTPException(
        status_code=413, detail=f"{label} file exceeds {config.MAX_UPLOAD_MB} MB")
    if upload.size is not None and upload.size > limit:
        raise too_large

    chunks = []
    total = 0
    while True:
        chunk = await upload.read(_READ_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise too_large
        chunks.append(chunk)
    if total == 0:
        raise HTTPException(status_code=400, detail=f"{label} file is empty")
    return b"".join(chunks)


@router.post("/combine", response_model=JobResponse)
async def combine(dsm: UploadFile = File(...), imagery: UploadFile = File(...)):
    """Start fusing an uploaded DSM and imagery pair.

    Decoding and mesh construction run in a background task; the caller
    receives a job ID immediately and can poll ``/status/{job_id}``.
    """
    dsm_bytes = await _read_upload(dsm, "DSM")
    imagery_bytes = await _read_upload(imagery, "Imagery")

    job = job_manager.create_job("combine")
    _spawn(job_manager.run_combine(
        job, dsm_bytes, imagery_bytes,
        dsm_name=dsm.filename or "DSM",
        imagery_name=imagery.filename or "Imagery"))
    return _job_response(job)


@router.post("/rotate", response_model=JobResponse)
async def rotate():
    """Rotate the imagery by 90° and rebuild the current terrain."""
    job = job_manager.create_job("rotate")
    _spawn(job_manager.run_rotate(job))
    return _job_response(job)


@router.get("/status/{job_id}", response_model=JobResponse)
async def get_status(job_id: str):
    """Poll the status of a combine or rotate job."""
    job = job_manager.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_response(job)


@router.get("/state", response_model=SessionState)
async def get_state():
    """Current rotation, committed terrain summary and recent log lines."""
    session = job_manager.session
    terrain = session.latest.snapshot()
    return SessionState(
        rotation=session.rotation.degrees,
        version=session.latest.version,
        terrain=summarize_terrain(terrain) if terrain is not None else None,
        log=list(session.log.tail(config.LOG_TAIL)),
    )


@router.get("/model.glb")
def get_model():
    """Latest committed terrain as GLB, encoded in memory.

    Plain ``def`` so FastAPI runs the encoding in its threadpool.
    """
    terrain = job_manager.session.latest.snapshot()
    if terrain is None:
        raise HTTPException(status_code=404, detail="No terrain has been built yet")
    return Response(
        content=encode_glb(terrain),
        media_type="model/gltf-binary",
        headers={"X-Terrain-Version": str(terrain.version)},
    )


@router.get("/texture.png")
def get_texture():
    terrain = job_manager.session.latest.snapshot()
    if terrain is None:
        raise HTTPException(status_code=404, detail="No terrain has been built yet")
    return Response(
        content=encode_png(terrain.texture),
        media_type="image/png",
        headers={"X-Terrain-Version": str(terrain.version)},
    )
