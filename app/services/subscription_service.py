import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.subscription import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

# Retries after losing an insert race on the active-subscription index
GRANT_ATTEMPTS = 3


class SubscriptionGrantError(Exception):
    pass


def grant_subscription(
    session: Session,
    user_id: int,
    course_id: int,
    duration_days: int,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Create or extend the user's subscription to a course.

    An ACTIVE subscription that has not ended yet is extended in place
    (ends_at += duration). Otherwise stale ACTIVE rows are marked EXPIRED
    and a new subscription starting now is created.

    Runs inside the caller's transaction and never commits. Concurrent
    grants for the same (user, course) serialize on the row lock, or on the
    partial unique index when there is no row to lock yet.
    """
    if duration_days <= 0:
        raise ValueError(f"duration_days must be positive, got {duration_days}")

    now = now or datetime.utcnow()
    duration = timedelta(days=duration_days)

    for attempt in range(1, GRANT_ATTEMPTS + 1):
        active = session.exec(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .where(Subscription.course_id == course_id)
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()

        current = next((s for s in active if s.ends_at > now), None)

        if current:
            current.ends_at = current.ends_at + duration
            current.updated_at = now
            session.add(current)
            session.flush()

            logger.info(
                f"Extended subscription {current.id} (user {user_id}, course {course_id}) "
                f"to {current.ends_at.isoformat()}"
            )
            return current

        try:
            with session.begin_nested():
                for stale in active:
                    stale.status = SubscriptionStatus.EXPIRED
                    stale.updated_at = now
                    session.add(stale)
                session.flush()

                subscription = Subscription(
                    user_id=user_id,
                    course_id=course_id,
                    status=SubscriptionStatus.ACTIVE,
                    starts_at=now,
                    ends_at=now + duration,
                    created_at=now,
                    updated_at=now,
                )
                session.add(subscription)
        except IntegrityError:
            logger.warning(
                f"Concurrent grant for user {user_id}, course {course_id} "
                f"(attempt {attempt}), retrying as extension"
            )
            continue

        logger.info(
            f"Created subscription {subscription.id} (user {user_id}, course {course_id}) "
            f"until {subscription.ends_at.isoformat()}"
        )
        return subscription

    raise SubscriptionGrantError(
        f"Could not grant subscription for user {user_id}, course {course_id}"
    )


def get_active_subscription(
    session: Session,
    user_id: int,
    course_id: int,
    now: Optional[datetime] = None,
) -> Optional[Subscription]:
    now = now or datetime.utcnow()

    return session.exec(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .where(Subscription.course_id == course_id)
        .where(Subscription.status == SubscriptionStatus.ACTIVE)
        .where(Subscription.ends_at > now)
    ).first()


def has_course_access(session: Session, user_id: int, course_id: int) -> bool:
    return get_active_subscription(session, user_id, course_id) is not None


def list_expiring_subscriptions(
    session: Session,
    within_days: int,
    now: Optional[datetime] = None,
) -> List[Subscription]:
    now = now or datetime.utcnow()

    return session.exec(
        select(Subscription)
        .where(Subscription.status == SubscriptionStatus.ACTIVE)
        .where(Subscription.ends_at >= now)
        .where(Subscription.ends_at <= now + timedelta(days=within_days))
    ).all()


def expire_stale_subscriptions(
    session: Session,
    now: Optional[datetime] = None,
) -> List[Subscription]:
    """Flip ACTIVE subscriptions whose end date has passed to EXPIRED."""
    now = now or datetime.utcnow()

    expired = session.exec(
        select(Subscription)
        .where(Subscription.status == SubscriptionStatus.ACTIVE)
        .where(Subscription.ends_at < now)
        .with_for_update(skip_locked=True)
    ).all()

    for subscription in expired:
        subscription.status = SubscriptionStatus.EXPIRED
        subscription.updated_at = now
        session.add(subscription)

    session.commit()

    logger.info(f"Expired {len(expired)} subscriptions")
    return expired
