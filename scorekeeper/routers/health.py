from __future__ import annotations

import logging
import os
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Request

from .. import __version__
from ..deps import get_announcer, get_app_settings, get_db, get_tts, no_store
from ..errors import ValidationError
from ..models import DeploymentTimeInput
from ..responses import success
from ..timeutils import parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

PACKAGE_NAME = "scorekeeper"
REPO_ROOT = Path(__file__).resolve().parents[2]


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _git(*args: str) -> str:
    out = subprocess.run(
        ["git", *args],
        cwd=REPO_ROOT,
        capture_output=True,
        text=True,
        timeout=2,
        check=True,
    )
    return out.stdout.strip()


def git_info() -> Dict[str, str]:
    commit = os.environ.get("BUILD_SOURCEVERSION") or os.environ.get("GITHUB_SHA")
    if commit:
        branch = (
            os.environ.get("BUILD_SOURCEBRANCH", "").replace("refs/heads/", "")
            or os.environ.get("GITHUB_REF_NAME")
            or "main"
        )
        return {"commit": commit, "branch": branch}
    try:
        return {"commit": _git("rev-parse", "HEAD"), "branch": _git("rev-parse", "--abbrev-ref", "HEAD")}
    except (OSError, subprocess.SubprocessError):
        return {"commit": "unknown", "branch": "unknown"}


def eastern(dt: datetime) -> str:
    try:
        tz = ZoneInfo("America/New_York")
    except ZoneInfoNotFoundError:
        tz = timezone.utc
    return dt.astimezone(tz).strftime("%m/%d/%Y, %I:%M:%S %p %Z")


@router.get("/health")
@router.get("/api/health")
def health(
    request: Request,
    settings=Depends(get_app_settings),
    db=Depends(get_db),
    announcer=Depends(get_announcer),
    tts=Depends(get_tts),
):
    services = {
        "database": {
            "available": settings.database_configured,
            "status": "connected" if settings.database_configured else "unavailable",
        },
        "announcer": {"available": announcer.ai_enabled, "provider": "anthropic"},
        "tts": {"available": tts.available, "provider": "google-cloud"},
    }

    try:
        db.store.ping()
        services["database"]["status"] = "connected"
    except Exception as e:
        services["database"]["status"] = "error"
        logger.warning(f"Database health check failed: {e}")

    healthy = services["database"]["available"] and services["tts"]["available"]
    status = "healthy" if healthy else "degraded"

    return success(
        request,
        {
            "status": status,
            "message": f"Hockey Scorekeeper API is running in {status} mode",
            "timestamp": utc_now_iso(),
            "uptime": int(_uptime(request)),
            "version": __version__,
            "environment": settings.environment,
            "services": services,
        },
    )


@router.get("/version", dependencies=[Depends(no_store)])
@router.get("/api/version", dependencies=[Depends(no_store)])
def version(request: Request):
    deployed = request.app.state.deployment_timestamp
    build_time = parse_timestamp(deployed) if deployed else utc_now()

    return success(
        request,
        {
            "name": PACKAGE_NAME,
            "version": __version__,
            **git_info(),
            "buildTime": eastern(build_time),
            "timestamp": build_time.isoformat(),
            "serverTime": utc_now_iso(),
            "uptime": _uptime(request),
            "deploymentEnv": "GitHub Actions" if os.environ.get("GITHUB_ACTIONS") else "Local",
        },
    )


@router.post("/api/admin/update-deployment-time")
def update_deployment_time(request: Request, body: DeploymentTimeInput):
    value = body.deploymentTimestamp.strip()
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            "deploymentTimestamp must be an ISO-8601 timestamp",
            details={"deploymentTimestamp": value},
        )

    request.app.state.deployment_timestamp = value
    logger.info(f"Deployment timestamp updated: {value}")
    return success(
        request,
        {"message": "Deployment timestamp updated", "timestamp": value, "updatedAt": utc_now_iso()},
    )
