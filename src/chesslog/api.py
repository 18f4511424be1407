"""HTTP surface for triggering jobs."""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request, status

from chesslog.app.use_cases.pipeline_run import JOBS, run_job
from chesslog.config import get_settings
from chesslog.errors import ChesscomApiError, OperationLockedError
from chesslog.utils import get_logger

logger = get_logger(__name__)


def _extract_api_token(request: Request) -> str | None:
    """Return bearer token or API key from the request headers."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    api_key = request.headers.get("x-api-key")
    if api_key:
        return api_key.strip()
    return None


def require_api_token(request: Request) -> None:
    """Raise HTTP 401 when the request token is missing or invalid."""
    if request.url.path == "/api/health":
        return
    expected = get_settings().api_token
    supplied = _extract_api_token(request)
    if not supplied or supplied != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


app = FastAPI(
    title="chesslog",
    version="0.1.0",
    dependencies=[Depends(require_api_token)],
)


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/jobs")
def list_jobs() -> dict[str, object]:
    return {"jobs": sorted(JOBS)}


@app.post("/api/jobs/{job}")
def trigger_job(job: str) -> dict[str, object]:
    """Run a job synchronously for the configured player and return its summary."""
    if job not in JOBS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job: {job}")
    settings = get_settings()
    try:
        result = run_job(job, settings)
    except OperationLockedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ChesscomApiError as exc:
        logger.warning("Job %s aborted by API error: %s", job, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"status": "ok", "job": job, "result": result}
