"""Data models for the relay server."""

from datetime import datetime

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A stored HTTP response, written once and replayed until it expires."""

    key: str  # Full incoming request URL, query string included
    body: bytes
    headers: list[tuple[str, str]]
    status: int
    created_at: datetime
    expires_at: datetime

    model_config = {"frozen": True}

    def is_expired(self, current_time: datetime) -> bool:
        """Check if the entry has outlived its tier TTL."""
        return current_time >= self.expires_at


class RewriteContext(BaseModel):
    """Per-request inputs needed to rewrite a playlist."""

    proxy_base: str = Field(..., description="Request URL without its query string")
    source_url: str = Field(..., description="Absolute upstream URL being rewritten")

    @classmethod
    def from_request_url(cls, request_url: str, source_url: str) -> "RewriteContext":
        """
        Build a context from the incoming request URL.

        Every rewritten link points back at the same path and differs only by
        query parameter, so link depth never grows across hops.
        """
        return cls(proxy_base=request_url.split("?", 1)[0], source_url=source_url)


class HealthResponse(BaseModel):
    """Response for the health check."""

    status: str = Field("healthy", description="Service status")
    cache_entries: int = Field(..., description="Live entries in the response cache")
    version: str = Field(..., description="Service version")
