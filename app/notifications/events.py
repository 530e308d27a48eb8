from enum import Enum


class SubscriptionEvent(str, Enum):
    SUBSCRIPTION_GRANTED = "subscription_granted"
    SUBSCRIPTION_EXPIRING = "subscription_expiring"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
