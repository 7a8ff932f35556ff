from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from app.response import CamelModel


MoodBoardStatus = Literal["in_progress", "completed", "archived"]


class MoodBoardGenerateIn(CamelModel):
    user_id: str = Field(min_length=1)
    room_type: str = Field(min_length=1, max_length=100)
    design_style: str = Field(min_length=1, max_length=100)
    color_palette: List[str] = Field(default_factory=list, max_length=12)
    budget: Optional[str] = Field(default=None, max_length=50)


class MoodBoardPublic(CamelModel):
    id: uuid.UUID
    user_id: str
    image_url: str
    description: str
    style: str
    room_type: str
    color_palette: Optional[List[str]] = None
    budget: Optional[str] = None
    status: MoodBoardStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


__all__ = [
    "MoodBoardStatus",
    "MoodBoardGenerateIn",
    "MoodBoardPublic",
]
