"""Celery 애플리케이션 부트스트랩."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict

from celery import Celery, signals
from celery.schedules import schedule as celery_schedule

from .settings import ALL_TENANTS, PollSchedule, Settings, get_settings
from .utils.logging import configure_logging

_CELERY_APP: Celery | None = None

POLL_TASK = "newswire.tasks.poll.poll_feeds"
RETENTION_TASK = "newswire.tasks.retention.retire_old_releases"


def create_celery_app(settings: Settings | None = None) -> Celery:
    """설정을 기반으로 Celery 인스턴스를 생성한다."""
    config = settings or get_settings()
    configure_logging(config.structlog_level, json_enabled=config.log_json)

    app = Celery("newswire", broker=config.redis_url, backend=config.redis_url)
    app.conf.update(
        task_default_queue="newswire.default",
        task_default_exchange="newswire",
        task_default_routing_key="newswire.default",
        task_soft_time_limit=config.celery_task_soft_time_limit,
        worker_concurrency=config.celery_worker_concurrency,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
        worker_send_task_events=True,
        task_send_sent_event=True,
    )

    app.autodiscover_tasks(["newswire.tasks"], related_name="poll")
    app.autodiscover_tasks(["newswire.tasks"], related_name="retention")
    _install_signal_handlers(app)
    return app


def get_celery_app() -> Celery:
    """싱글톤 Celery 인스턴스를 반환한다."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    schedule: Dict[str, Dict[str, Any]] = {}
    for index, item in enumerate(settings.poll_schedules):
        if not item.enabled:
            continue
        tenant_arg = None if item.tenant_id == ALL_TENANTS else item.tenant_id
        schedule[_build_schedule_name(item, index)] = {
            "task": POLL_TASK,
            "schedule": celery_schedule(timedelta(minutes=item.interval_minutes)),
            "args": (tenant_arg, item.extract_content),
            "options": {"queue": "newswire.poll"},
        }
    if settings.retention_enabled:
        schedule["retention.all"] = {
            "task": RETENTION_TASK,
            "schedule": celery_schedule(timedelta(hours=settings.retention_interval_hours)),
            "args": (None,),
            "options": {"queue": "newswire.maintenance"},
        }
    return schedule


def _build_schedule_name(item: PollSchedule, index: int) -> str:
    tenant = "all" if item.tenant_id == ALL_TENANTS else item.tenant_id.lower()
    return f"poll.{tenant}.{index}"


def _install_signal_handlers(app: Celery) -> None:
    logger = logging.getLogger("newswire.worker")

    @signals.worker_shutdown.connect  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("Celery worker shutdown detected", extra={"sender": str(sender)})
