"""Domain DTOs for the newswire pipeline."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedType(str, Enum):
    IR_NEWS = "ir-news"
    SEC_FILINGS = "sec-filings"
    GENERAL_NEWS = "general-news"
    INDUSTRY = "industry"
    CUSTOM = "custom"


class Origin(str, Enum):
    RSS = "rss"
    STORED = "stored"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class FeedSource(BaseModel):
    """A configured feed for one tenant; mutated by each poll, never auto-deleted."""

    id: str
    tenant_id: str = Field(..., description="소유 테넌트 ID")
    url: str
    display_name: str
    feed_type: FeedType = FeedType.CUSTOM
    enabled: bool = True
    last_fetched_at: Optional[datetime] = None
    last_error: Optional[str] = None
    success_rate: float = Field(1.0, ge=0, le=1)
    fetch_count: int = Field(0, ge=0)
    success_count: int = Field(0, ge=0)
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    company_variations: List[str] = Field(default_factory=list, description="회사명 별칭 (티커, 약칭 등)")


class FeedItem(BaseModel):
    """One entry of a fetched feed (ephemeral)."""

    title: str
    description: str = ""
    published_at: datetime
    link: str
    guid: Optional[str] = None
    source_feed_url: str


class ExtractedArticle(BaseModel):
    sanitized_html: str
    text_content: str
    extraction_method: str = Field(..., description="선택된 전략 (e.g., precise-boundary, selector:article)")
    confidence_score: float = Field(..., ge=0, le=1)


class RedirectCacheEntry(BaseModel):
    original_url: str
    resolved_url: str
    resolved_at: datetime
    ttl_seconds: int = Field(..., gt=0)
    method: str = "direct-redirect"

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        current = now or utcnow()
        return self.resolved_at + timedelta(seconds=self.ttl_seconds) >= current


class ResolutionResult(BaseModel):
    final_url: str
    cached: bool
    resolution_time_ms: float = Field(..., ge=0)
    method: str
    redirect_chain: List[str] = Field(default_factory=list)


class ExtractionEvent(BaseModel):
    timestamp: datetime
    url: str
    success: bool
    redirect_time_ms: float = 0.0
    extraction_time_ms: float = 0.0
    total_time_ms: float = 0.0
    cached: bool = False
    final_source_domain: Optional[str] = None
    extracted_by: Optional[str] = None
    confidence: Optional[float] = None
    error: Optional[str] = Field(None, description="'ErrorKind: message' 형식")


class MergedRelease(BaseModel):
    id: str
    title: str
    content: str = ""
    summary: str = ""
    source_url: str
    published_at: datetime
    company_id: Optional[str] = None
    matched_company_name: Optional[str] = None
    relevance_score: int = Field(0, description="회사 매칭 점수 (0 = 매칭 없음)")
    origin: Origin
    content_hash: str = Field(..., description="정규화된 제목/본문/발행일 해시")


class FeedValidationResult(BaseModel):
    valid: bool
    title: Optional[str] = None
    item_count: Optional[int] = None
    error: Optional[str] = None


class FeedValidationReport(FeedValidationResult):
    suggested_name: str
    detected_type: FeedType
    timestamp: datetime


class PollError(BaseModel):
    tenant_id: Optional[str] = None
    source_id: Optional[str] = None
    url: Optional[str] = None
    error: str


class PollSummary(BaseModel):
    total_sources: int = 0
    succeeded: int = 0
    failed: int = 0
    new_items: int = 0
    errors: List[PollError] = Field(default_factory=list)
    tenants: List[str] = Field(default_factory=list)
    cancelled: bool = False
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None


class RetentionSummary(BaseModel):
    """Result of one retention cleanup run."""

    cutoff: datetime
    tenants: List[str] = Field(default_factory=list)
    retired: int = 0
    errors: List[PollError] = Field(default_factory=list)
