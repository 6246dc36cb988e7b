from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Orientation(str, Enum):
    landscape = "landscape"
    portrait = "portrait"

    @property
    def dimensions(self) -> tuple[int, int]:
        return (1080, 1920) if self is Orientation.portrait else (1920, 1080)


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Short error message")
    details: Optional[str] = Field(None, description="Tool diagnostics, e.g. ffmpeg stderr")
