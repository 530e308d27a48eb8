from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class SubscriptionOut(BaseModel):
    id: int
    course_id: int
    status: str
    starts_at: datetime
    ends_at: datetime
    time_slot: Optional[str] = None
    is_usable: bool


class CourseAccessResponse(BaseModel):
    course_id: int
    has_access: bool
    ends_at: Optional[datetime] = None
