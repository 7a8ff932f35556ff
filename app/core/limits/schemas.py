from __future__ import annotations

from typing import Literal

from pydantic import Field

from app.response import CamelModel


UsageAction = Literal["check", "increment"]


class ImageUsageRequest(CamelModel):
    user_id: str = Field(min_length=1)
    action: UsageAction


class ImageUsageSnapshot(CamelModel):
    subscription_tier: str
    subscription_status: str
    images_used: int
    images_limit: int
    remaining_images: int
    can_generate_image: bool
    is_new_month: bool


class ImageUsageIncrement(CamelModel):
    success: bool = True
    images_used: int
    images_limit: int
    remaining_images: int
    message: str


__all__ = [
    "UsageAction",
    "ImageUsageRequest",
    "ImageUsageSnapshot",
    "ImageUsageIncrement",
]
