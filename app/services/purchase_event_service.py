from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from app.models.purchase_event import PurchaseEvent


def log_purchase_event(
    session: Session,
    purchase_id: str,
    event_type: str,
    label: str,
    created_by: str = "payme",
    meta: Optional[dict] = None,
):
    """
    Append-only audit trail for purchase state changes.
    Added to the caller's transaction, never committed here.
    """

    event = PurchaseEvent(
        purchase_id=purchase_id,
        event_type=event_type,
        label=label,
        meta=meta,
        created_by=created_by,
        created_at=datetime.utcnow(),
    )

    session.add(event)
    return event


def list_purchase_events(session: Session, purchase_id: str) -> List[PurchaseEvent]:
    return session.exec(
        select(PurchaseEvent)
        .where(PurchaseEvent.purchase_id == purchase_id)
        .order_by(PurchaseEvent.created_at)
    ).all()
