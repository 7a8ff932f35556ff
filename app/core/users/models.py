from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, String, func

from app.database.base import Base


class User(Base):
    """Per-user subscription and usage record, owned by the backend."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "images_used_this_month >= 0",
            name="ck_users_images_used_non_negative",
        ),
        CheckConstraint(
            "images_limit_per_month >= 0",
            name="ck_users_images_limit_non_negative",
        ),
    )

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=True)

    # sub_... once resolved, cs_... while a checkout is still pending.
    subscription_id = Column(String, nullable=True, index=True)
    subscription_status = Column(String, nullable=False, default="inactive")
    subscription_tier = Column(String, nullable=False, default="free")

    images_used_this_month = Column(Integer, nullable=False, default=0)
    images_limit_per_month = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


__all__ = ["User"]
