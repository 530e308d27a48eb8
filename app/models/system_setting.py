from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

class SystemSetting(SQLModel, table=True):
    key: str = Field(primary_key=True)   # e.g. PAYME_SECRET_KEY
    value: Optional[str] = None

    updated_at: datetime = Field(default_factory=datetime.utcnow)
