"""Config sub-models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitConfig(BaseModel):
    """Sliding-window limit applied to every Mochi API call."""

    max_requests: int = Field(default=20, ge=1)
    window_seconds: float = Field(default=10.0, gt=0.0)


__all__ = ["RateLimitConfig"]
