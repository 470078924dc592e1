"""Configuration models for the newswire service."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List, Literal, Optional, Set

from pydantic import (
    BaseModel,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

ALL_TENANTS = "*"


class PollSchedule(BaseModel):
    """Represents a periodic poll job configuration."""

    tenant_id: str = Field(ALL_TENANTS, description="폴링 대상 테넌트 ID ('*'는 전체 테넌트).")
    interval_minutes: PositiveInt = Field(..., description="폴링 주기 (분 단위).")
    extract_content: bool = Field(False, description="기사 본문 추출 여부.")
    enabled: bool = Field(True, description="스케줄 사용 여부.")

    @field_validator("tenant_id")
    @classmethod
    def _normalize_tenant(cls, value: str) -> str:
        tenant = value.strip()
        if not tenant:
            raise ValueError("tenant_id는 공백일 수 없습니다.")
        return tenant


class Settings(BaseSettings):
    """Newswire 환경 설정."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(..., alias="NEWSWIRE_REDIS_URL", description="Celery 브로커/백엔드 및 리다이렉트 캐시 Redis DSN.")
    postgres_dsn: str = Field(..., alias="POSTGRES_DSN", description="PostgreSQL 연결 문자열.")
    poll_shared_secret: Optional[SecretStr] = Field(
        None,
        alias="POLL_SHARED_SECRET",
        description="폴링 트리거 공유 비밀값 (Bearer 토큰).",
    )

    user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        alias="HTTP_USER_AGENT",
        description="외부 요청 User-Agent.",
    )
    feed_timeout_seconds: PositiveFloat = Field(15.0, alias="FEED_TIMEOUT_SECONDS", description="피드 조회 타임아웃(초)")
    feed_max_attempts: PositiveInt = Field(2, alias="FEED_MAX_ATTEMPTS", description="피드 조회 최대 시도 횟수")
    validation_timeout_seconds: PositiveFloat = Field(
        10.0, alias="VALIDATION_TIMEOUT_SECONDS", description="피드 검증 타임아웃(초)"
    )
    article_timeout_seconds: PositiveFloat = Field(20.0, alias="ARTICLE_TIMEOUT_SECONDS", description="기사 본문 조회 타임아웃(초)")
    article_max_attempts: PositiveInt = Field(2, alias="ARTICLE_MAX_ATTEMPTS", description="기사 본문 조회 최대 시도 횟수")

    redirect_timeout_seconds: PositiveFloat = Field(15.0, alias="REDIRECT_TIMEOUT_SECONDS", description="리다이렉트 hop 타임아웃(초)")
    redirect_max_hops: PositiveInt = Field(10, alias="REDIRECT_MAX_HOPS", description="리다이렉트 최대 hop 수")
    redirect_cache_ttl_seconds: PositiveInt = Field(86_400, alias="REDIRECT_CACHE_TTL_SECONDS", description="리다이렉트 캐시 TTL.")
    redirect_cache_capacity: PositiveInt = Field(1_000, alias="REDIRECT_CACHE_CAPACITY", description="리다이렉트 캐시 최대 항목 수.")
    redirect_cache_backend: Literal["memory", "redis"] = Field(
        "memory",
        alias="REDIRECT_CACHE_BACKEND",
        description="리다이렉트 캐시 저장소 (memory | redis).",
    )
    aggregator_hosts: List[str] = Field(
        default_factory=lambda: ["news.google.com"],
        alias="AGGREGATOR_HOSTS",
        description="리다이렉트 해석 대상 애그리게이터 호스트 목록.",
    )

    monitor_ring_capacity: PositiveInt = Field(1_000, alias="MONITOR_RING_CAPACITY", description="최근 이벤트 링 버퍼 크기.")
    monitor_bucket_seconds: PositiveInt = Field(60, alias="MONITOR_BUCKET_SECONDS", description="집계 버킷 크기(초).")
    monitor_retention_hours: PositiveInt = Field(48, alias="MONITOR_RETENTION_HOURS", description="집계 버킷 보존 시간.")
    monitor_lookback_minutes: PositiveInt = Field(60, alias="MONITOR_LOOKBACK_MINUTES", description="헬스 판단 구간(분).")
    health_degraded_success_rate: float = Field(0.8, alias="HEALTH_DEGRADED_SUCCESS_RATE", ge=0, le=1)
    health_unhealthy_success_rate: float = Field(0.5, alias="HEALTH_UNHEALTHY_SUCCESS_RATE", ge=0, le=1)
    health_degraded_p95_ms: PositiveFloat = Field(10_000.0, alias="HEALTH_DEGRADED_P95_MS", description="p95 지연 임계값(ms)")

    dedup_recency_days: PositiveInt = Field(7, alias="DEDUP_RECENCY_DAYS", description="RSS 항목 우선 적용 기간(일).")
    stored_lookback_days: PositiveInt = Field(30, alias="STORED_LOOKBACK_DAYS", description="병합 시 조회할 저장 이력 기간(일).")
    poll_inter_source_delay_seconds: float = Field(
        1.0, alias="POLL_INTER_SOURCE_DELAY_SECONDS", ge=0, description="피드 간 대기 시간(초)."
    )
    extract_full_text: bool = Field(False, alias="EXTRACT_FULL_TEXT", description="폴링 시 기사 본문 추출 여부.")
    retention_enabled: bool = Field(True, alias="RELEASE_RETENTION_ENABLED", description="오래된 보도자료 정리 스케줄 사용 여부.")
    retention_days: PositiveInt = Field(30, alias="RELEASE_RETENTION_DAYS", description="보도자료 보존 기간(일).")
    retention_interval_hours: PositiveInt = Field(
        24, alias="RELEASE_RETENTION_INTERVAL_HOURS", description="정리 작업 실행 주기(시간)."
    )
    poll_schedules: List[PollSchedule] = Field(
        default_factory=list,
        alias="POLL_SCHEDULES",
        description="JSON 배열 혹은 객체 리스트 형태의 폴링 스케줄.",
    )

    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="구조화 로그 레벨.")
    log_json: bool = Field(False, alias="LOG_JSON", description="로그를 JSON 형식으로 출력할지 여부.")
    celery_worker_concurrency: PositiveInt = Field(
        4,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Celery 워커 동시 실행 수.",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        600,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery 태스크 소프트 타임아웃 (초).",
    )

    @field_validator("poll_schedules", mode="before")
    @classmethod
    def _parse_poll_schedules(cls, value: Any) -> List[Any]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("POLL_SCHEDULES는 JSON 배열이어야 합니다.") from exc
            return parsed
        if isinstance(value, list):
            return value
        raise ValueError("POLL_SCHEDULES는 리스트 형태여야 합니다.")

    @field_validator("poll_schedules")
    @classmethod
    def _validate_unique_schedule(cls, value: List[PollSchedule]) -> List[PollSchedule]:
        seen: Set[str] = set()
        for schedule in value:
            if schedule.tenant_id in seen:
                raise ValueError(f"중복된 스케줄 항목이 존재합니다: {schedule.tenant_id}")
            seen.add(schedule.tenant_id)
        return value

    @field_validator("aggregator_hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        hosts = [str(h).strip().lower() for h in value or [] if str(h).strip()]
        if not hosts:
            raise ValueError("AGGREGATOR_HOSTS는 비어 있을 수 없습니다.")
        return hosts

    @field_validator("postgres_dsn")
    @classmethod
    def _validate_postgres_dsn(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("POSTGRES_DSN은 유효한 DSN 문자열이어야 합니다.")
        return value

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "Settings":
        if self.health_unhealthy_success_rate > self.health_degraded_success_rate:
            raise ValueError("HEALTH_UNHEALTHY_SUCCESS_RATE는 HEALTH_DEGRADED_SUCCESS_RATE 이하여야 합니다.")
        return self


@lru_cache()
def get_settings() -> Settings:
    """환경 변수를 기준으로 Settings 인스턴스를 반환한다."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"환경 변수 검증에 실패했습니다: {exc}") from exc


def reset_settings_cache() -> None:
    """Settings LRU 캐시를 초기화한다 (테스트 용도)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
