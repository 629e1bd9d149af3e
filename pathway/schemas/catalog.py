"""
Catalog Schemas

Read-only views of catalog entries handed to the progression engine.
"""

from typing import Optional

from pydantic import BaseModel, Field


class VideoView(BaseModel):
    """Snapshot of a video as the engine sees it."""

    id: int
    title: str = ""
    order: int = Field(..., ge=1, description="Rank on the learning path")
    is_published: bool = True
    duration: float = Field(default=0, ge=0, description="Duration in seconds")
    quiz_id: Optional[int] = None

    model_config = {"from_attributes": True}


class VideoDeleteResponse(BaseModel):
    """Schema for the video deletion response."""

    video_id: int
    progress_records_cleaned: int
