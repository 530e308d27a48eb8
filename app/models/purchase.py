from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import BigInteger, Column
from sqlmodel import SQLModel, Field


class PurchaseStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class Purchase(SQLModel, table=True):
    """
    One attempt by one user to pay for one course.

    Created PENDING by checkout, moved to PAID / FAILED only by the
    Payme transaction service. Never deleted.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)

    amount: float
    provider: str = Field(default="PAYME")
    status: PurchaseStatus = Field(default=PurchaseStatus.PENDING, index=True)

    # One provider transaction maps to exactly one purchase
    provider_txn_id: Optional[str] = Field(default=None, unique=True, index=True)
    # ms since epoch, as sent by the provider
    provider_create_time: Optional[int] = Field(default=None, sa_column=Column(BigInteger))

    perform_time: Optional[datetime] = None
    cancel_time: Optional[datetime] = None
    cancel_reason: Optional[int] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
