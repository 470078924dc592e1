from __future__ import annotations

import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse

from newswire.components import Components, get_components
from newswire.errors import ScopeResolutionFailed
from newswire.models.domain import FeedValidationReport, HealthStatus, PollSummary
from newswire.utils.logging import get_logger

from .models import (
    ErrorResponse,
    FeedValidateRequest,
    HealthResponse,
    HealthWindow,
    PollRequest,
    ResetResponse,
)

router = APIRouter(prefix="/api")
logger = get_logger(__name__)

ComponentsDep = Annotated[Components, Depends(get_components)]


def require_poll_secret(
    components: ComponentsDep,
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    secret = components.settings.poll_shared_secret
    if secret is None or not secret.get_secret_value():
        logger.warning("poll.auth.unconfigured")
        raise HTTPException(status_code=401, detail="Unauthorized")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), secret.get_secret_value()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post(
    "/poll",
    response_model=PollSummary,
    responses={401: {"description": "Bad secret"}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_poll_secret)],
)
def trigger_poll_route(components: ComponentsDep, payload: Optional[PollRequest] = None):
    request = payload or PollRequest()
    try:
        return components.orchestrator.poll_all(request.tenant_id, extract_content=request.extract_content)
    except ScopeResolutionFailed as exc:
        logger.error("poll.scope_failed", extra={"tenant_id": request.tenant_id, "error": str(exc)})
        return JSONResponse(status_code=503, content=ErrorResponse(error=str(exc)).model_dump())


@router.get("/health", response_model=HealthResponse, responses={503: {"model": HealthResponse}})
def extraction_health_route(
    components: ComponentsDep,
    window_hours: Annotated[Optional[float], Query(gt=0, le=48)] = None,
    recent: Annotated[int, Query(ge=0, le=1000)] = 0,
):
    monitor = components.monitor
    report = monitor.get_health_check()
    body = HealthResponse(
        status=report["status"],
        timestamp=report["timestamp"],
        metrics=report["metrics"],
        insights=report["insights"],
        cache_stats=components.resolver.get_cache_stats(),
    )
    if window_hours is not None:
        body.window = HealthWindow(
            hours=window_hours,
            metrics=monitor.get_metrics_for_window(window_hours * 3600 * 1000),
        )
    if recent:
        body.recent_events = monitor.get_recent_events(recent)

    status_code = 503 if report["status"] == HealthStatus.UNHEALTHY.value else 200
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/health/reset", response_model=ResetResponse)
def reset_health_route(components: ComponentsDep) -> ResetResponse:
    components.monitor.reset()
    return ResetResponse(message="Extraction metrics reset")


@router.post("/feeds/validate", response_model=FeedValidationReport)
def validate_feed_route(components: ComponentsDep, payload: FeedValidateRequest) -> FeedValidationReport:
    return components.validator.validate(payload.url.strip())
