from pydantic import BaseModel, field_validator
from typing import Any, Dict, Optional


def _as_str(value):
    # Payme ids may arrive as JSON numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class PaymeRequest(BaseModel):
    method: str
    params: Dict[str, Any] = {}
    id: Optional[Any] = None


class PaymeAccount(BaseModel):
    order_id: str

    @field_validator("order_id", mode="before")
    @classmethod
    def coerce_order_id(cls, value):
        return _as_str(value)


class CheckPerformParams(BaseModel):
    account: PaymeAccount
    amount: Optional[int] = None


class TransactionParams(BaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _as_str(value)


class CreateTransactionParams(TransactionParams):
    account: PaymeAccount
    time: Optional[int] = None
    amount: Optional[int] = None


class PerformTransactionParams(TransactionParams):
    pass


class CancelTransactionParams(TransactionParams):
    reason: Optional[int] = None
