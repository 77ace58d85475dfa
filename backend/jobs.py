import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from backend import config
from terrafuse.presenter import frame_camera
from terrafuse.session import FusedTerrain, FusionResult, FusionSession

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"


@dataclass
class Job:
    id: str
    kind: str
    status: JobStatus = JobStatus.queued
    progress: float = 0.0
    message: str = "Queued"
    stage: Optional[str] = None
    result: Optional[dict] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def summarize_terrain(terrain: FusedTerrain) -> dict:
    mesh = terrain.mesh
    camera = frame_camera(mesh)
    return {
        "version": terrain.version,
        "rotation": terrain.rotation.degrees,
        "width": mesh.width,
        "height": mesh.height,
        "vertices": mesh.vertex_count,
        "faces": int(len(mesh.faces)),
        "min_elevation": mesh.min_elevation,
        "max_elevation": mesh.max_elevation,
        "elevation_scale": mesh.elevation_scale,
        "camera": {"position": list(camera.position),
                   "target": list(camera.target)},
    }


class JobManager:
    """Tracks combine/rotate jobs run against one shared session."""

    def __init__(self, session: Optional[FusionSession] = None,
                 max_jobs: Optional[int] = None) -> None:
        self.session = session or FusionSession()
        self.max_jobs = config.MAX_JOBS if max_jobs is None else max_jobs
        self.jobs: dict[str, Job] = {}

    def create_job(self, kind: str) -> Job:
        job = Job(id=str(uuid.uuid4()), kind=kind)
        self.jobs[job.id] = job
        self._prune()
        return job

    def _prune(self) -> None:
        """Drop the oldest finished jobs once more than max_jobs are held."""
        excess = len(self.jobs) - self.max_jobs
        if excess <= 0:
            return
        finished = [job_id for job_id, job in self.jobs.items()
                    if job.status in (JobStatus.completed, JobStatus.failed)]
        for job_id in finished[:excess]:
            del self.jobs[job_id]

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.jobs.get(job_id)

    async def run_combine(self, job: Job, dsm: bytes, imagery: bytes,
                          dsm_name: str = "DSM",
                          imagery_name: str = "Imagery") -> None:
        """Decode and fuse the uploaded rasters, updating *job*."""
        self._start(job, "Reading rasters...")
        outcome = await self.session.combine(
            dsm, imagery, elevation_name=dsm_name, color_name=imagery_name,
            progress_callback=self._progress_for(job))
        self._finish(job, outcome)

    async def run_rotate(self, job: Job) -> None:
        """Advance the session rotation and rebuild, updating *job*."""
        self._start(job, "Rotating imagery...")
        outcome = await self.session.rotate(
            progress_callback=self._progress_for(job))
        self._finish(job, outcome)

    @staticmethod
    def _start(job: Job, message: str) -> None:
        job.status = JobStatus.running
        job.progress = 5.0
        job.message = message

    @staticmethod
    def _progress_for(job: Job):
        def _update_progress(pct: float, msg: str) -> None:
            job.progress = pct
            job.message = msg
        return _update_progress

    @staticmethod
    def _finish(job: Job, outcome: FusionResult) -> None:
        job.message = outcome.message
        if not outcome.ok:
            logger.warning(f"{job.kind} job {job.id} failed at "
                           f"{outcome.stage}: {outcome.message}")
            job.status = JobStatus.failed
            job.progress = 0.0
            job.stage = outcome.stage
            return

        job.status = JobStatus.completed
        job.progress = 100.0
        job.result = {"rotation": outcome.rotation.degrees}
        if outcome.terrain is not None:
            job.result["terrain"] = summarize_terrain(outcome.terrain)


# Singleton instance used across the application
job_manager = JobManager()
