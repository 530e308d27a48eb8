from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from app.database import get_session
from app.dependencies.admin import require_admin
from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User
from app.services.purchase_event_service import list_purchase_events
from app.utils.pagination import paginate

router = APIRouter()


def _parse_status(enum_cls, value: Optional[str]):
    if not value or value.lower() == "all":
        return None
    try:
        return enum_cls(value.upper())
    except ValueError:
        raise HTTPException(400, f"Unknown status: {value}")


@router.get("/purchases")
def list_purchases(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    query = (
        select(Purchase, User, Course)
        .join(User, User.id == Purchase.user_id)
        .join(Course, Course.id == Purchase.course_id)
    )

    purchase_status = _parse_status(PurchaseStatus, status)
    if purchase_status:
        query = query.where(Purchase.status == purchase_status)

    if search:
        s = f"%{search}%"
        query = query.where(
            (Purchase.provider_txn_id.ilike(s)) |
            (Purchase.id.ilike(s)) |
            (User.first_name.ilike(s)) |
            (User.phone.ilike(s))
        )

    data = paginate(
        session=session,
        query=query.order_by(Purchase.created_at.desc()),
        page=page,
        limit=limit,
    )

    data["results"] = [
        {
            "id": p.id,
            "user_name": f"{u.first_name} {u.last_name or ''}".strip(),
            "user_phone": u.phone,
            "course_name": c.title,
            "amount": p.amount,
            "method": p.provider,
            "status": p.status.value,
            "txn_id": p.provider_txn_id,
            "perform_time": p.perform_time,
            "cancel_time": p.cancel_time,
            "cancel_reason": p.cancel_reason,
            "created_at": p.created_at,
        }
        for p, u, c in data["results"]
    ]

    return data


@router.get("/purchases/{purchase_id}/events")
def purchase_timeline(
    purchase_id: str,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    if not session.get(Purchase, purchase_id):
        raise HTTPException(404, "Purchase not found")

    return list_purchase_events(session, purchase_id)


@router.get("/subscriptions")
def list_subscriptions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    course_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    query = select(Subscription)

    subscription_status = _parse_status(SubscriptionStatus, status)
    if subscription_status:
        query = query.where(Subscription.status == subscription_status)

    if course_id:
        query = query.where(Subscription.course_id == course_id)

    return paginate(
        session=session,
        query=query.order_by(Subscription.ends_at.desc()),
        page=page,
        limit=limit,
    )
