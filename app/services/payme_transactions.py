"""
Payme merchant API state machine.

Drives a Purchase through CheckPerformTransaction -> CreateTransaction ->
PerformTransaction / CancelTransaction. PENDING is the only initial state,
PAID and FAILED are terminal, and every method is safe to repeat: Payme
retries on timeouts and may call concurrently for the same transaction.

State changes use conditional updates (`... WHERE status = 'PENDING'`), so
of two concurrent PerformTransaction calls exactly one grants the
subscription and the other takes the already-paid path.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.schemas.payme_schemas import (
    CancelTransactionParams,
    CheckPerformParams,
    CreateTransactionParams,
    PerformTransactionParams,
)
from app.services.payme_config import to_tiyin
from app.services.payme_errors import (
    IncorrectAmount,
    InvalidParams,
    MethodNotFound,
    OrderAlreadyPaid,
    OrderNotFound,
    TransactionConflict,
    TransactionNotFound,
)
from app.services.purchase_event_service import log_purchase_event
from app.services.subscription_service import grant_subscription

logger = logging.getLogger(__name__)

# Payme transaction states
STATE_CREATED = 1
STATE_PERFORMED = 2
STATE_CANCELLED = -1


def to_millis(value: datetime) -> int:
    """Naive UTC datetime -> Payme timestamp (ms since epoch)."""
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)


@dataclass
class TransactionOutcome:
    result: dict
    # Set only when this call moved the purchase to PAID
    performed_purchase_id: Optional[str] = None


class PaymeTransactionService:
    def __init__(
        self,
        session: Session,
        *,
        default_duration_days: int = 30,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.default_duration_days = default_duration_days
        self.clock = clock

        self._methods = {
            "CheckPerformTransaction": (CheckPerformParams, self.check_perform_transaction),
            "CreateTransaction": (CreateTransactionParams, self.create_transaction),
            "PerformTransaction": (PerformTransactionParams, self.perform_transaction),
            "CancelTransaction": (CancelTransactionParams, self.cancel_transaction),
        }

    def handle(self, method: str, params: dict) -> TransactionOutcome:
        entry = self._methods.get(method)
        if entry is None:
            raise MethodNotFound(data=method)

        params_model, handler = entry
        try:
            parsed = params_model.model_validate(params or {})
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
            raise InvalidParams(data=fields)

        return handler(parsed)

    # -------------------------
    # CheckPerformTransaction
    # -------------------------
    def check_perform_transaction(self, params: CheckPerformParams) -> TransactionOutcome:
        purchase = self._get_by_order(params.account.order_id)

        if purchase.status == PurchaseStatus.PAID:
            raise OrderAlreadyPaid(data="order_id")

        self._check_amount(purchase, params.amount)

        return TransactionOutcome({"allow": True})

    # -------------------------
    # CreateTransaction
    # -------------------------
    def create_transaction(self, params: CreateTransactionParams) -> TransactionOutcome:
        purchase = self._get_by_order(params.account.order_id)

        # Retry of a create we already accepted
        if purchase.provider_txn_id == params.id:
            logger.info(f"CreateTransaction retry for {params.id}, purchase {purchase.id}")
            return TransactionOutcome(self._create_ack(purchase))

        if purchase.provider_txn_id:
            raise TransactionConflict("Order is linked to another transaction", data="order_id")

        if purchase.status == PurchaseStatus.PAID:
            raise OrderAlreadyPaid(data="order_id")

        self._check_amount(purchase, params.amount)

        linked = self.session.exec(
            select(Purchase).where(Purchase.provider_txn_id == params.id)
        ).first()
        if linked:
            raise TransactionConflict("Transaction is linked to another order", data="id")

        now = self.clock()
        create_time = params.time or to_millis(now)

        try:
            linked_now = self._update_purchase(
                purchase.id,
                Purchase.provider_txn_id.is_(None),
                provider_txn_id=params.id,
                provider_create_time=create_time,
                updated_at=now,
            )
            if linked_now:
                log_purchase_event(
                    self.session,
                    purchase.id,
                    "transaction_created",
                    "Payme transaction created",
                    meta={"transaction": params.id, "create_time": create_time},
                )
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise TransactionConflict("Transaction is linked to another order", data="id")

        self.session.refresh(purchase)

        # Lost a race against a create with a different id
        if purchase.provider_txn_id != params.id:
            raise TransactionConflict("Order is linked to another transaction", data="order_id")

        logger.info(f"Payme transaction {params.id} linked to purchase {purchase.id}")
        return TransactionOutcome(self._create_ack(purchase))

    # -------------------------
    # PerformTransaction
    # -------------------------
    def perform_transaction(self, params: PerformTransactionParams) -> TransactionOutcome:
        purchase = self._get_by_transaction(params.id)

        # 🔒 Idempotency guard: never grant twice
        if purchase.status == PurchaseStatus.PAID:
            logger.info(f"PerformTransaction retry for {params.id}, already paid")
            return TransactionOutcome(self._perform_ack(purchase))

        if purchase.status == PurchaseStatus.FAILED:
            raise TransactionConflict("Transaction was cancelled", data="id")

        now = self.clock()

        claimed = self._update_purchase(
            purchase.id,
            Purchase.status == PurchaseStatus.PENDING,
            status=PurchaseStatus.PAID,
            perform_time=now,
            updated_at=now,
        )

        if not claimed:
            # Another request moved it first; report whatever it decided
            self.session.rollback()
            self.session.refresh(purchase)
            if purchase.status == PurchaseStatus.PAID:
                return TransactionOutcome(self._perform_ack(purchase))
            raise TransactionConflict("Transaction was cancelled", data="id")

        # Purchase transition and grant commit together or not at all
        try:
            course = self.session.get(Course, purchase.course_id)
            duration_days = (course.duration_days if course else None) or self.default_duration_days

            subscription = grant_subscription(
                self.session,
                purchase.user_id,
                purchase.course_id,
                duration_days,
                now=now,
            )

            log_purchase_event(
                self.session,
                purchase.id,
                "performed",
                "Payment captured, subscription granted",
                meta={
                    "transaction": params.id,
                    "subscription_id": subscription.id,
                    "duration_days": duration_days,
                },
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.error(f"Subscription grant failed for purchase {purchase.id}, payment left pending")
            raise

        self.session.refresh(purchase)
        logger.info(f"Payme transaction {params.id} performed, purchase {purchase.id} paid")

        return TransactionOutcome(
            self._perform_ack(purchase),
            performed_purchase_id=purchase.id,
        )

    # -------------------------
    # CancelTransaction
    # -------------------------
    def cancel_transaction(self, params: CancelTransactionParams) -> TransactionOutcome:
        purchase = self.session.exec(
            select(Purchase).where(Purchase.provider_txn_id == params.id)
        ).first()

        now = self.clock()

        # Nothing to cancel is a successful no-op for Payme
        if purchase is None:
            logger.info(f"CancelTransaction for unknown transaction {params.id}, nothing to cancel")
            return TransactionOutcome({
                "transaction": params.id,
                "cancel_time": to_millis(now),
                "state": STATE_CANCELLED,
            })

        if purchase.status == PurchaseStatus.PENDING:
            cancelled = self._update_purchase(
                purchase.id,
                Purchase.status == PurchaseStatus.PENDING,
                status=PurchaseStatus.FAILED,
                cancel_time=now,
                cancel_reason=params.reason,
                updated_at=now,
            )
            if cancelled:
                log_purchase_event(
                    self.session,
                    purchase.id,
                    "cancelled",
                    "Payme transaction cancelled",
                    meta={"transaction": params.id, "reason": params.reason},
                )
            self.session.commit()
            self.session.refresh(purchase)

        if purchase.status == PurchaseStatus.PAID:
            logger.warning(
                f"CancelTransaction for paid purchase {purchase.id} ignored, status stays PAID"
            )

        return TransactionOutcome(self._cancel_ack(purchase))

    # -------------------------
    # helpers
    # -------------------------
    def _get_by_order(self, order_id: str) -> Purchase:
        purchase = self.session.get(Purchase, order_id)
        if purchase is None:
            raise OrderNotFound(data="order_id")
        return purchase

    def _get_by_transaction(self, transaction_id: str) -> Purchase:
        purchase = self.session.exec(
            select(Purchase).where(Purchase.provider_txn_id == transaction_id)
        ).first()
        if purchase is None:
            raise TransactionNotFound(data="id")
        return purchase

    @staticmethod
    def _check_amount(purchase: Purchase, amount: Optional[int]) -> None:
        if amount is not None and amount != to_tiyin(purchase.amount):
            raise IncorrectAmount(data="amount")

    def _update_purchase(self, purchase_id: str, condition, **values) -> bool:
        result = self.session.execute(
            update(Purchase)
            .where(Purchase.id == purchase_id)
            .where(condition)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _state_of(purchase: Purchase) -> int:
        if purchase.status == PurchaseStatus.PAID:
            return STATE_PERFORMED
        if purchase.status == PurchaseStatus.FAILED:
            return STATE_CANCELLED
        return STATE_CREATED

    def _create_ack(self, purchase: Purchase) -> dict:
        return {
            "create_time": purchase.provider_create_time,
            "transaction": purchase.provider_txn_id,
            "state": self._state_of(purchase),
        }

    @staticmethod
    def _perform_ack(purchase: Purchase) -> dict:
        return {
            "transaction": purchase.provider_txn_id,
            "perform_time": to_millis(purchase.perform_time),
            "state": STATE_PERFORMED,
        }

    @staticmethod
    def _cancel_ack(purchase: Purchase) -> dict:
        if purchase.status == PurchaseStatus.PAID:
            return {
                "transaction": purchase.provider_txn_id,
                "cancel_time": 0,
                "state": STATE_PERFORMED,
            }
        return {
            "transaction": purchase.provider_txn_id,
            "cancel_time": to_millis(purchase.cancel_time),
            "state": STATE_CANCELLED,
        }
