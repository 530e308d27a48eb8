import logging

from sqlmodel import Session

from app.models.course import Course
from app.models.notifications import NotificationType
from app.models.purchase import Purchase
from app.models.user import User
from app.notifications.channels import Channel
from app.notifications.events import SubscriptionEvent
from app.notifications.rules import NOTIFICATION_RULES
from app.notifications.telegram_handlers import send_admin_telegram, send_user_telegram
from app.services.chat_service import add_user_to_course_chat
from app.services.notification_service import create_notification
from app.services.subscription_service import get_active_subscription

logger = logging.getLogger(__name__)

USER_TELEGRAM_TEMPLATES = {
    SubscriptionEvent.SUBSCRIPTION_GRANTED: "telegram/subscription_granted.html",
    SubscriptionEvent.SUBSCRIPTION_EXPIRING: "telegram/subscription_expiring.html",
}

ADMIN_TELEGRAM_TEMPLATES = {
    SubscriptionEvent.SUBSCRIPTION_EXPIRED: "telegram/admin_subscription_expired.html",
}


def _run_channel(channel: Channel, event: SubscriptionEvent, session: Session, func, *args, **kwargs) -> bool:
    """Run one channel; a failure is logged and never reaches the caller."""
    try:
        result = func(*args, **kwargs)
        return result is not False
    except Exception:
        logger.exception(f"{channel.value} failed for {event.value}")
        session.rollback()
        return False


def _create_granted_notification(session: Session, user: User, course: Course, related_id):
    create_notification(
        session=session,
        user_id=user.id,
        type=NotificationType.success,
        trigger_source="subscription",
        related_id=related_id,
        title=f'"{course.title}" kursiga obuna tasdiqlandi!',
        title_ru=f'Подписка на курс "{course.title_ru or course.title}" подтверждена!',
        message="To'lov muvaffaqiyatli amalga oshirildi. Endi barcha darslarni ko'rishingiz mumkin.",
        message_ru="Оплата прошла успешно. Теперь вам доступны все уроки.",
        link=f"/courses/{course.id}",
    )
    session.commit()


def dispatch_subscription_event(
    *,
    event: SubscriptionEvent,
    session: Session,
    user: User,
    course: Course,
    subscription=None,
    purchase: Purchase | None = None,
) -> dict:
    """
    Central side-effect dispatcher for subscription events.

    Handles:
    - user in-app notification
    - user Telegram message
    - admin Telegram message
    - course chat enrollment

    Each channel is independent and best-effort: the payment and the
    subscription are already committed when this runs.
    Returns {channel: delivered} for the channels the event's rules enable.
    """

    rules = NOTIFICATION_RULES.get(event, {})
    results = {}

    course_title = course.title
    if user.language == "ru" and course.title_ru:
        course_title = course.title_ru

    ends_at = subscription.ends_at if subscription else None

    # -------------------------
    # USER IN-APP NOTIFICATION
    # -------------------------
    if rules.get(Channel.INAPP_USER):
        results[Channel.INAPP_USER] = _run_channel(
            Channel.INAPP_USER, event, session,
            _create_granted_notification,
            session, user, course, purchase.id if purchase else None,
        )

    # -------------------------
    # USER TELEGRAM
    # -------------------------
    if rules.get(Channel.TELEGRAM_USER):
        results[Channel.TELEGRAM_USER] = _run_channel(
            Channel.TELEGRAM_USER, event, session,
            send_user_telegram,
            USER_TELEGRAM_TEMPLATES[event],
            user,
            course_title=course_title,
            ends_at=ends_at,
        )

    # -------------------------
    # ADMIN TELEGRAM
    # -------------------------
    if rules.get(Channel.TELEGRAM_ADMIN):
        results[Channel.TELEGRAM_ADMIN] = _run_channel(
            Channel.TELEGRAM_ADMIN, event, session,
            send_admin_telegram,
            ADMIN_TELEGRAM_TEMPLATES[event],
            user_name=f"{user.first_name} {user.last_name or ''}".strip(),
            user_ref=f"@{user.username}" if user.username else f"ID: {user.id}",
            course_title=course.title,
            ends_at=ends_at,
        )

    # -------------------------
    # CHAT ENROLLMENT
    # -------------------------
    if rules.get(Channel.CHAT_ENROLL):
        results[Channel.CHAT_ENROLL] = _run_channel(
            Channel.CHAT_ENROLL, event, session,
            add_user_to_course_chat,
            session, user.id, course.id,
        )

    return results


def dispatch_purchase_paid(engine, purchase_id: str):
    """
    Background task scheduled after PerformTransaction commits.
    Opens its own session; nothing here can fail the webhook response.
    """
    try:
        with Session(engine) as session:
            purchase = session.get(Purchase, purchase_id)
            if purchase is None:
                logger.error(f"Side effects skipped: purchase {purchase_id} not found")
                return None

            user = session.get(User, purchase.user_id)
            course = session.get(Course, purchase.course_id)
            if user is None or course is None:
                logger.error(f"Side effects skipped: user or course missing for purchase {purchase_id}")
                return None

            subscription = get_active_subscription(session, purchase.user_id, purchase.course_id)

            return dispatch_subscription_event(
                event=SubscriptionEvent.SUBSCRIPTION_GRANTED,
                session=session,
                user=user,
                course=course,
                subscription=subscription,
                purchase=purchase,
            )
    except Exception:
        logger.exception(f"Side effects failed for purchase {purchase_id}")
        return None
