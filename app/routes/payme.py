import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.database import get_session
from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.models.user import User
from app.notifications import dispatch_purchase_paid
from app.schemas.checkout_schemas import PaymeCheckoutRequest, PaymeCheckoutResponse
from app.schemas.payme_schemas import PaymeRequest
from app.services.payme_auth import PaymeAuthenticator
from app.services.payme_config import generate_payme_url, load_payme_config, to_tiyin
from app.services.payme_errors import InternalError, InvalidParams, ParseError, PaymeError
from app.services.payme_transactions import PaymeTransactionService
from app.services.purchase_event_service import log_purchase_event
from app.utils.token import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _rpc_response(rpc_id, *, result=None, error: PaymeError | None = None) -> JSONResponse:
    if error is not None:
        return JSONResponse(
            {"id": rpc_id, "error": error.to_dict()},
            status_code=error.http_status,
        )
    return JSONResponse({"id": rpc_id, "result": result})


def _load_rpc_body(raw: bytes) -> dict:
    try:
        body = json.loads(raw or b"")
    except (ValueError, UnicodeDecodeError):
        raise ParseError()

    if not isinstance(body, dict):
        raise ParseError("Request body must be a JSON object")

    return body


def _validate_rpc_body(body: dict) -> PaymeRequest:
    try:
        return PaymeRequest.model_validate(body)
    except ValidationError:
        raise InvalidParams("Request must carry method and params")


@router.post("/webhook")
async def payme_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    """
    Payme merchant API endpoint (JSON-RPC over HTTP POST).

    401 for authentication failures, 200 for every protocol outcome
    (errors travel in the body), 500 for unexpected failures.
    """
    rpc_id = None

    try:
        # 1️⃣ Authenticate before touching the body
        config = await run_in_threadpool(load_payme_config, session, settings)
        PaymeAuthenticator(config.login, config.secret_key).authenticate(
            request.headers.get("authorization")
        )

        # 2️⃣ Parse the JSON-RPC envelope
        body = _load_rpc_body(await request.body())
        rpc_id = body.get("id")
        payload = _validate_rpc_body(body)

        # 3️⃣ Drive the purchase state machine
        service = PaymeTransactionService(
            session,
            default_duration_days=settings.DEFAULT_DURATION_DAYS,
        )
        outcome = await run_in_threadpool(service.handle, payload.method, payload.params)

    except PaymeError as exc:
        logger.info(f"Payme webhook error {exc.code}: {exc.message}")
        return _rpc_response(rpc_id, error=exc)

    except Exception:
        logger.exception("Payme webhook internal error")
        await run_in_threadpool(session.rollback)
        return _rpc_response(rpc_id, error=InternalError())

    # 🔔 Notifications / chat enrollment run after the response is built
    if outcome.performed_purchase_id:
        background_tasks.add_task(
            dispatch_purchase_paid,
            session.get_bind(),
            outcome.performed_purchase_id,
        )

    return _rpc_response(rpc_id, result=outcome.result)


@router.post("/create", response_model=PaymeCheckoutResponse)
def create_payme_checkout(
    data: PaymeCheckoutRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Start a Payme checkout for a course.
    The amount comes from the course price; the client never sends it.
    """
    course = session.get(Course, data.course_id)

    if not course or not course.is_active:
        raise HTTPException(404, "Course not found")

    purchase = Purchase(
        user_id=current_user.id,
        course_id=course.id,
        amount=course.price,
        provider="PAYME",
        status=PurchaseStatus.PENDING,
    )

    session.add(purchase)
    session.flush()
    log_purchase_event(
        session,
        purchase.id,
        "created",
        "Checkout started",
        created_by="user",
        meta={"amount": purchase.amount},
    )
    session.commit()
    session.refresh(purchase)

    config = load_payme_config(session, settings)
    payment_url = generate_payme_url(
        config,
        to_tiyin(purchase.amount),
        {"order_id": purchase.id},
        lang=current_user.language or "uz",
        app_url=settings.APP_URL,
    )

    logger.info(f"Purchase {purchase.id} created for user {current_user.id}, course {course.id}")

    return {
        "purchase_id": purchase.id,
        "amount": purchase.amount,
        "status": purchase.status.value,
        "payment_url": payment_url,
    }
