from typing import List, Optional

from sqlalchemy import update
from sqlmodel import Session, select, func

from app.models.notifications import Notification, NotificationType

MAX_PAGE_SIZE = 50


def create_notification(
    *,
    session: Session,
    user_id: int,
    title: str,
    message: str,
    link: Optional[str] = None,
    trigger_source: str = "system",
    related_id: Optional[str] = None,
    title_ru: Optional[str] = None,
    message_ru: Optional[str] = None,
    type: NotificationType = NotificationType.info,
):
    notification = Notification(
        user_id=user_id,
        type=type,
        trigger_source=trigger_source,
        related_id=related_id,
        title=title,
        title_ru=title_ru,
        message=message,
        message_ru=message_ru,
        link=link,
    )
    session.add(notification)
    session.flush()
    return notification


def list_user_notifications(session: Session, user_id: int, limit: int = 20) -> dict:
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    notifications = session.exec(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    ).all()

    unread_count = session.exec(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.is_read == False)  # noqa: E712
    ).one()

    return {
        "notifications": notifications,
        "unread_count": unread_count,
    }


def mark_notifications_read(
    session: Session,
    user_id: int,
    ids: Optional[List[int]] = None,
    mark_all: bool = False,
) -> int:
    statement = (
        update(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.is_read == False)  # noqa: E712
    )

    if not mark_all:
        if not ids:
            return 0
        statement = statement.where(Notification.id.in_(ids))

    result = session.execute(statement.values(is_read=True))
    session.commit()
    return result.rowcount
