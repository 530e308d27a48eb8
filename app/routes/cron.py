import hmac
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.jobs.subscription_check import run_subscription_check

router = APIRouter()


@router.get("/subscription-check")
def subscription_check(
    key: Optional[str] = None,
    session: Session = Depends(get_session),
):
    if settings.CRON_SECRET and not hmac.compare_digest(key or "", settings.CRON_SECRET):
        raise HTTPException(401, "Unauthorized")

    summary = run_subscription_check(session)

    return {
        "success": True,
        "message": (
            f"Checked subscriptions. Notified {summary['reminded']} users. "
            f"Processed {summary['expired']} expired."
        ),
        **summary,
    }
