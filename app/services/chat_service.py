import logging

from sqlmodel import Session, select

from app.models.chat import ChatMember, ChatRoom
from app.models.course import Course

logger = logging.getLogger(__name__)


def get_or_create_course_room(session: Session, course_id: int) -> ChatRoom:
    room = session.exec(
        select(ChatRoom).where(ChatRoom.course_id == course_id)
    ).first()

    if room:
        return room

    course = session.get(Course, course_id)
    room = ChatRoom(
        course_id=course_id,
        name=course.title if course else f"Course {course_id}",
    )
    session.add(room)
    session.flush()

    logger.info(f"Created chat room {room.id} for course {course_id}")
    return room


def add_user_to_course_chat(session: Session, user_id: int, course_id: int) -> ChatMember:
    """Enroll the user in the course discussion room; repeat calls are no-ops."""
    room = get_or_create_course_room(session, course_id)

    member = session.exec(
        select(ChatMember)
        .where(ChatMember.room_id == room.id)
        .where(ChatMember.user_id == user_id)
    ).first()

    if member:
        return member

    member = ChatMember(room_id=room.id, user_id=user_id)
    session.add(member)
    session.commit()
    session.refresh(member)

    logger.info(f"User {user_id} added to chat room {room.id} (course {course_id})")
    return member
