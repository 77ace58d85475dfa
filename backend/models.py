from pydantic import BaseModel
from typing import List, Optional


class JobResponse(BaseModel):
    job_id: str
    kind: str
    status: str
    progress: float
    message: str
    stage: Optional[str] = None
    result: Optional[dict] = None


class CameraInfo(BaseModel):
    position: List[float]
    target: List[float]


class TerrainSummary(BaseModel):
    version: int
    rotation: int
    width: int
    height: int
    vertices: int
    faces: int
    min_elevation: float
    max_elevation: float
    elevation_scale: float
    camera: CameraInfo


class SessionState(BaseModel):
    rotation: int
    version: int
    terrain: Optional[TerrainSummary] = None
    log: List[str] = []
