"""Pydantic schemas for render requests and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RenderRequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    frames: list[str] = Field(default_factory=list)
    frame_rate: float = Field(alias="frameRate")
    image_format: str | None = Field(default=None, alias="format")
    frame_count: int | None = Field(default=None, alias="frameCount", ge=1)


class RenderResponseModel(BaseModel):
    status: str = "ok"
    job_id: str
    video_url: str
    expires_at: datetime


class RenderErrorSchema(BaseModel):
    status: str = "error"
    failure_reason: str
    details: str | None = None
