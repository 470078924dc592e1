from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from newswire.models.domain import ExtractionEvent


class PollRequest(BaseModel):
    tenant_id: Optional[str] = Field(None, description="대상 테넌트 (없으면 전체)")
    extract_content: Optional[bool] = Field(None, description="본문 추출 여부 (없으면 설정값)")

    @field_validator("tenant_id")
    @classmethod
    def _strip_tenant(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class FeedValidateRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class HealthWindow(BaseModel):
    hours: float
    metrics: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    metrics: dict[str, Any]
    insights: dict[str, Any]
    cache_stats: dict[str, Any]
    window: Optional[HealthWindow] = None
    recent_events: Optional[list[ExtractionEvent]] = None


class ResetResponse(BaseModel):
    success: bool = True
    message: str
