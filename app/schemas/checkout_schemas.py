# app/schemas/checkout_schemas.py
from pydantic import BaseModel


class PaymeCheckoutRequest(BaseModel):
    course_id: int


class PaymeCheckoutResponse(BaseModel):
    purchase_id: str
    amount: float         # so'm; Payme is billed amount * 100 tiyin
    status: str
    payment_url: str
