from __future__ import annotations

from pydantic import BaseModel, Field


class HostTestRequest(BaseModel):
    host: str = Field(..., min_length=1, max_length=253)
    port: int | None = Field(None, ge=1, le=65535)


class ReconcileResponse(BaseModel):
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    rescheduled: list[str] = Field(default_factory=list)
    unchanged: int = 0
