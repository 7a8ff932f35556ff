from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Text, Uuid, func

from app.database.base import Base


class MoodBoard(Base):
    __tablename__ = "mood_boards"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        String,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_url = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    style = Column(String, nullable=False)
    room_type = Column(String, nullable=False)
    color_palette = Column(JSON, nullable=True)
    budget = Column(String, nullable=True)
    status = Column(String, nullable=False, default="completed")
    ai_prompt = Column(Text, nullable=True)
    provider = Column(String, nullable=False, default="dall-e-3")

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


Index(
    "ix_mood_boards_user_created",
    MoodBoard.user_id,
    MoodBoard.created_at,
)


__all__ = ["MoodBoard"]
