from app.notifications.events import SubscriptionEvent
from app.notifications.channels import Channel


NOTIFICATION_RULES = {

    SubscriptionEvent.SUBSCRIPTION_GRANTED: {
        Channel.INAPP_USER: True,
        Channel.TELEGRAM_USER: True,
        Channel.CHAT_ENROLL: True,
    },

    SubscriptionEvent.SUBSCRIPTION_EXPIRING: {
        Channel.TELEGRAM_USER: True,
    },

    SubscriptionEvent.SUBSCRIPTION_EXPIRED: {
        Channel.TELEGRAM_ADMIN: True,
    },

}
