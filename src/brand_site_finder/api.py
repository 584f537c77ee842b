from __future__ import annotations

from contextlib import asynccontextmanager
import hmac
import ipaddress
import os
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware

from .automation import DiscoveryController
from .checkpoints import CheckpointStore
from .config import load_config
from .db import init_db, session_scope
from .jobs import recent_jobs
from .pipeline import JOB_NAME
from .records import STATUSES

EXPORT_SUFFIXES = {".csv": "text/csv", ".json": "application/json"}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


def _parse_origins() -> list[str]:
    raw = os.getenv(
        "FRONTEND_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8000,http://127.0.0.1:8000",
    )
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def _export_dir() -> Path:
    config = load_config()
    path = Path(config.export_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _is_loopback_host(host: Optional[str]) -> bool:
    if not host:
        return False
    candidate = host.strip()
    if candidate == "localhost":
        return True
    try:
        return ipaddress.ip_address(candidate).is_loopback
    except ValueError:
        return False


def require_mutation_auth(
    request: Request,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    authorization: Optional[str] = Header(default=None),
) -> None:
    config = load_config()
    client_host = request.client.host if request.client else None
    if config.mutation_localhost_bypass and _is_loopback_host(client_host):
        return

    token = x_api_key
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    expected = config.mutation_api_key
    if not expected:
        raise HTTPException(status_code=401, detail="Mutation API key is required")
    if not token or not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Invalid mutation API key")


class RunStartRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    brands_file: Optional[str] = Field(None, max_length=255, pattern=r"^[\w./-]+\.json$")
    scope: Optional[str] = Field(None, max_length=50)
    limit: Optional[int] = Field(None, ge=1, le=100000)
    export: Optional[bool] = None


discovery_controller = DiscoveryController()


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        init_db()
        try:
            yield
        finally:
            discovery_controller.stop()

    app = FastAPI(title="Brand Site Finder API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/status")
    def api_status() -> dict:
        return discovery_controller.status()

    @app.get("/api/jobs")
    def api_jobs(limit: int = Query(default=50, ge=1, le=500)) -> list[dict]:
        with session_scope() as session:
            rows = recent_jobs(session, limit=limit)
        return [
            {
                "id": str(row.id),
                "job_name": row.job_name,
                "scope": row.scope,
                "status": row.status,
                "started_at": row.started_at.isoformat() if row.started_at else None,
                "finished_at": row.finished_at.isoformat() if row.finished_at else None,
                "processed_count": row.processed_count,
                "details": row.details,
                "error": row.error,
            }
            for row in rows
        ]

    @app.get("/api/checkpoints/latest")
    def api_latest_checkpoint(scope: Optional[str] = Query(default=None, max_length=50)) -> dict:
        summary = CheckpointStore(JOB_NAME, scope).latest_summary()
        if summary is None:
            raise HTTPException(status_code=404, detail="No checkpoint yet")
        return summary

    @app.get("/api/results")
    def api_results(
        scope: Optional[str] = Query(default=None, max_length=50),
        status: Optional[str] = Query(default=None),
        limit: int = Query(default=100, ge=1, le=5000),
        offset: int = Query(default=0, ge=0),
    ) -> dict:
        if status is not None and status not in STATUSES:
            raise HTTPException(status_code=400, detail=f"status must be one of {sorted(STATUSES)}")
        state = CheckpointStore(JOB_NAME, scope).load_latest(load_config().daily_quota_limit)
        if state is None:
            return {"total": 0, "items": []}

        with state.lock:
            results = state.success_results + state.failed_results
        if status is not None:
            results = [r for r in results if r.status == status]
        return {
            "total": len(results),
            "items": [r.to_dict() for r in results[offset:offset + limit]],
        }

    @app.post("/api/runs/start", dependencies=[Depends(require_mutation_auth)])
    def api_run_start(payload: Optional[RunStartRequest] = None) -> dict:
        updates = payload.model_dump(exclude_none=True) if payload else {}
        if "brands_file" in updates and ".." in Path(updates["brands_file"]).parts:
            raise HTTPException(status_code=400, detail="Invalid brands_file")
        return discovery_controller.start(updates=updates)

    @app.post("/api/runs/stop", dependencies=[Depends(require_mutation_auth)])
    def api_run_stop() -> dict:
        return discovery_controller.stop()

    @app.get("/api/exports/files")
    def api_export_files() -> list[dict]:
        files = []
        for path in _export_dir().iterdir():
            if path.suffix not in EXPORT_SUFFIXES or not path.is_file():
                continue
            stat = path.stat()
            files.append(
                {
                    "name": path.name,
                    "size": stat.st_size,
                    "modified_at": stat.st_mtime,
                }
            )
        files.sort(key=lambda entry: entry["modified_at"], reverse=True)
        return files

    @app.get("/api/exports/files/{filename}")
    def api_download_export(filename: str):
        if "/" in filename or "\\" in filename:
            raise HTTPException(status_code=400, detail="Invalid filename")

        export_dir = _export_dir()
        path = export_dir / filename
        # Resolved path must stay within the export dir
        if not path.resolve().is_relative_to(export_dir.resolve()):
            raise HTTPException(status_code=400, detail="Invalid filename")
        if path.suffix not in EXPORT_SUFFIXES or not path.is_file():
            raise HTTPException(status_code=404, detail="File not found")

        return FileResponse(path, media_type=EXPORT_SUFFIXES[path.suffix], filename=filename)

    return app


app = create_app()
