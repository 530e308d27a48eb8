from .events import SubscriptionEvent
from .dispatcher import dispatch_purchase_paid, dispatch_subscription_event

__all__ = [
    "SubscriptionEvent",
    "dispatch_purchase_paid",
    "dispatch_subscription_event",
]
