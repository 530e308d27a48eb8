from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


# ---------- ENUMS (SAFE FOR SQLMODEL) ----------

class NotificationType(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"


# ---------- MODEL ----------

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    type: NotificationType = NotificationType.info

    trigger_source: str  # subscription / purchase / system
    related_id: Optional[str] = None  # purchase id

    title: str
    title_ru: Optional[str] = None
    message: str
    message_ru: Optional[str] = None
    link: Optional[str] = None

    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
