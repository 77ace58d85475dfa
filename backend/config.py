import os

from terrafuse.constants import BASE_DIR  # noqa: F401  (loads .env)

# Uploads above this size are rejected with 413
MAX_UPLOAD_MB = float(os.environ.get("TERRAFUSE_MAX_UPLOAD_MB", "512"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "TERRAFUSE_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

# Number of log lines returned by /api/terrain/state
LOG_TAIL = 50

# Finished jobs beyond this count are dropped, oldest first
MAX_JOBS = int(os.environ.get("TERRAFUSE_MAX_JOBS", "200"))
