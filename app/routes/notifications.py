from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.database import get_session
from app.models.user import User
from app.schemas.notification_schemas import MarkReadRequest
from app.services.notification_service import list_user_notifications, mark_notifications_read
from app.utils.token import get_current_user

router = APIRouter()


@router.get("")
def my_notifications(
    limit: int = Query(20, ge=1, le=50),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return list_user_notifications(session, current_user.id, limit=limit)


@router.patch("/read")
def mark_read(
    data: MarkReadRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    updated = mark_notifications_read(
        session,
        current_user.id,
        ids=data.ids,
        mark_all=data.all,
    )
    return {"updated": updated}
