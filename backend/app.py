import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import config
from backend.routers import terrain
from terrafuse.constants import LOG_FORMAT

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

app = FastAPI(
    title="TerraFuse API",
    description="Fuses a DSM and co-registered imagery into a textured 3-D terrain",
    version="0.1.0",
)

# ---------------------------------------------------------------------------
# CORS -- allow the viewer dev server
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(terrain.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "TerraFuse API"}
