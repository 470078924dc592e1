"""Retention cleanup: retire stored releases older than the retention window."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

from celery import shared_task

from newswire.db.models import JobStage
from newswire.errors import describe
from newswire.models.domain import PollError, RetentionSummary, utcnow
from newswire.repositories.releases import ReleaseStore
from newswire.utils.logging import get_logger

logger = get_logger(__name__)


def retire_old_releases(
    store: ReleaseStore,
    *,
    retention_days: int,
    tenant_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RetentionSummary:
    """Retire releases published before ``now - retention_days`` for each tenant.

    A failing tenant is recorded and skipped; retired rows stay in storage but
    drop out of the merge lookback.
    """
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    summary = RetentionSummary(cutoff=cutoff)
    summary.tenants = [tenant_id] if tenant_id else list(store.list_tenants())
    logger.info("retention.start", extra={"tenants": len(summary.tenants), "cutoff": cutoff.isoformat()})

    for tenant in summary.tenants:
        try:
            retired = store.retire_releases_before(tenant, cutoff)
        except Exception as exc:
            summary.errors.append(PollError(tenant_id=tenant, error=describe(exc)))
            logger.exception("retention.tenant_failed", extra={"tenant_id": tenant})
            continue
        summary.retired += retired
        logger.info("retention.tenant_done", extra={"tenant_id": tenant, "retired": retired})

    logger.info("retention.finished", extra={"retired": summary.retired, "errors": len(summary.errors)})
    return summary


def retention_core(tenant_id: Optional[str] = None) -> RetentionSummary:
    """Core logic behind the Celery task; test-friendly."""
    from newswire.components import get_components
    from newswire.tasks.poll import _ensure_schema

    components = get_components()
    days = components.settings.retention_days
    recorder_factory = getattr(components.store, "job_recorder", None)
    if recorder_factory is None:
        return retire_old_releases(components.store, retention_days=days, tenant_id=tenant_id)

    _ensure_schema(components.settings)
    with recorder_factory(
        tenant_id=tenant_id,
        task_name="retire_old_releases",
        trace_id=str(uuid.uuid4()),
        stage=JobStage.RETENTION,
    ) as job:
        summary = retire_old_releases(components.store, retention_days=days, tenant_id=tenant_id)
        job.stats = {"retired": summary.retired, "tenants": len(summary.tenants), "errors": len(summary.errors)}
        return summary


@shared_task(name="newswire.tasks.retention.retire_old_releases")
def retire_old_releases_task(tenant_id: Optional[str] = None) -> dict:  # pragma: no cover - wrapper
    return retention_core(tenant_id).model_dump(mode="json")
