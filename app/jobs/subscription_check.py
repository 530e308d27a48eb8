import logging
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from app.config import settings
from app.database import engine
from app.models.course import Course
from app.models.user import User
from app.notifications import SubscriptionEvent, dispatch_subscription_event
from app.notifications.channels import Channel
from app.services.subscription_service import (
    expire_stale_subscriptions,
    list_expiring_subscriptions,
)

logger = logging.getLogger(__name__)


def run_subscription_check(
    session: Session,
    now: Optional[datetime] = None,
    reminder_days: Optional[int] = None,
) -> dict:
    """
    Daily sweep:
    1. remind users whose subscription ends within `reminder_days`
    2. mark ended subscriptions EXPIRED and tell the admin chat
    Entitlement checks never depend on this job; it only tidies state.
    """
    now = now or datetime.utcnow()
    reminder_days = reminder_days or settings.EXPIRY_REMINDER_DAYS

    reminded = 0
    for subscription in list_expiring_subscriptions(session, reminder_days, now):
        user = session.get(User, subscription.user_id)
        course = session.get(Course, subscription.course_id)
        if user is None or course is None:
            continue

        results = dispatch_subscription_event(
            event=SubscriptionEvent.SUBSCRIPTION_EXPIRING,
            session=session,
            user=user,
            course=course,
            subscription=subscription,
        )
        if results.get(Channel.TELEGRAM_USER):
            reminded += 1

    expired = expire_stale_subscriptions(session, now)

    for subscription in expired:
        user = session.get(User, subscription.user_id)
        course = session.get(Course, subscription.course_id)
        if user is None or course is None:
            continue

        dispatch_subscription_event(
            event=SubscriptionEvent.SUBSCRIPTION_EXPIRED,
            session=session,
            user=user,
            course=course,
            subscription=subscription,
        )

    logger.info(
        f"Subscription check: reminded {reminded} users, expired {len(expired)} subscriptions"
    )
    return {"reminded": reminded, "expired": len(expired)}


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    with Session(engine) as session:
        summary = run_subscription_check(session)
    print(f"Reminded {summary['reminded']} users, expired {summary['expired']} subscriptions")
