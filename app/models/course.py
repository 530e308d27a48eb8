from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    title_ru: Optional[str] = None

    # Price in so'm; Payme is billed in tiyin (price * 100)
    price: float
    duration_days: Optional[int] = Field(default=30)

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
