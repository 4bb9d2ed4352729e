"""Pydantic model for engine settings."""

from typing import Optional
from pydantic import BaseModel, Field


class RetrySettings(BaseModel):
    """Backoff policy for retryable provider errors."""
    max_attempts: int = Field(default=5, ge=1, description="Provider calls per operation, including the first")
    backoff_base: float = Field(default=0.5, ge=0, description="Exponential backoff multiplier in seconds")
    backoff_max: float = Field(default=30.0, ge=0, description="Upper bound for one backoff sleep")


class StateSettings(BaseModel):
    """Where the state file lives."""
    path: str = Field(default=".infraweave/state.json", description="JSON state file path")


class ProviderSettings(BaseModel):
    """Which provider capability to use and how to reach it."""
    name: str = Field(default="memory", description="Registry name: memory or http")
    path: Optional[str] = Field(default=None, description="Backing file for the memory provider")
    base_url: Optional[str] = Field(default=None, description="Base URL for the http provider")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout for the http provider")
    token: Optional[str] = Field(default=None, description="Bearer token for the http provider")


class EngineSettings(BaseModel):
    """Validated engine configuration."""
    max_workers: int = Field(default=4, ge=1, description="Operations allowed in flight at once")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    state: StateSettings = Field(default_factory=StateSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
