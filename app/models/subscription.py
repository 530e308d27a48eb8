from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class Subscription(SQLModel, table=True):
    # At most one ACTIVE row per (user, course); concurrent grants collide here
    __table_args__ = (
        Index(
            "uq_subscription_active_user_course",
            "user_id",
            "course_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)

    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE)
    starts_at: datetime
    ends_at: datetime

    # Scheduled / offline courses only
    time_slot: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Stored ACTIVE may be stale; the end date is the source of truth."""
        now = now or datetime.utcnow()
        return self.status == SubscriptionStatus.ACTIVE and self.ends_at > now
