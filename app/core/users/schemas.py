from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import ConfigDict, Field

from app.response import CamelModel


class UserIdRequest(CamelModel):
    user_id: str = Field(min_length=1)


class EnsureUserRequest(UserIdRequest):
    email: Optional[str] = None


class EnsureUserResponse(CamelModel):
    success: bool = True
    created: bool
    user_id: str


class DeleteAccountResponse(CamelModel):
    success: bool = True


class UserSnapshot(CamelModel):
    user_id: str
    email: Optional[str] = None
    subscription_id: Optional[str] = None
    subscription_status: str
    subscription_tier: str
    images_used_this_month: int
    images_limit_per_month: int
    last_reset_date: Optional[date] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


__all__ = [
    "UserIdRequest",
    "EnsureUserRequest",
    "EnsureUserResponse",
    "DeleteAccountResponse",
    "UserSnapshot",
]
