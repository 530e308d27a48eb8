from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from app.database import get_session
from app.models.subscription import Subscription
from app.models.user import User
from app.schemas.subscription_schemas import CourseAccessResponse, SubscriptionOut
from app.services.subscription_service import get_active_subscription
from app.utils.token import get_current_user

router = APIRouter()


@router.get("/me", response_model=List[SubscriptionOut])
def my_subscriptions(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    subscriptions = session.exec(
        select(Subscription)
        .where(Subscription.user_id == current_user.id)
        .order_by(Subscription.ends_at.desc())
    ).all()

    now = datetime.utcnow()

    return [
        {
            "id": s.id,
            "course_id": s.course_id,
            "status": s.status.value,
            "starts_at": s.starts_at,
            "ends_at": s.ends_at,
            "time_slot": s.time_slot,
            "is_usable": s.is_usable(now),
        }
        for s in subscriptions
    ]


@router.get("/courses/{course_id}/access", response_model=CourseAccessResponse)
def course_access(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Entitlement check used by the lesson / video layer."""
    subscription = get_active_subscription(session, current_user.id, course_id)

    return {
        "course_id": course_id,
        "has_access": subscription is not None,
        "ends_at": subscription.ends_at if subscription else None,
    }
