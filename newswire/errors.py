"""Error taxonomy shared by connectors, services and the poll orchestrator."""

from __future__ import annotations


class NewswireError(Exception):
    """Base error for the newswire pipeline."""


class ConnectorError(NewswireError):
    """Base connector error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx semantics)."""


class FeedUnreachable(ConnectorError):
    """Feed could not be fetched or did not contain a parseable feed envelope."""


class ArticleFetchFailed(ConnectorError):
    """Publisher article page could not be fetched."""


class ResolutionFailed(NewswireError):
    """Aggregator redirect chain was broken, too long or timed out."""


class NoContentFound(NewswireError):
    """Every extraction strategy was exhausted without a quality candidate."""


class QualityRejected(NewswireError):
    """A content candidate failed the quality gate.

    Internal to the extractor: it triggers the next strategy and is never
    surfaced to callers.
    """


class ScopeResolutionFailed(NewswireError):
    """Tenants or feed sources for a poll run could not be enumerated."""


def error_kind(error: str | None) -> str:
    """Return the error class name from a recorded ``"Kind: message"`` string."""
    if not error:
        return "Unknown"
    return error.split(":", 1)[0].strip() or "Unknown"


def describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"
