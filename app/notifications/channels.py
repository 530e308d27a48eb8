from enum import Enum


class Channel(str, Enum):
    INAPP_USER = "inapp_user"
    TELEGRAM_USER = "telegram_user"
    TELEGRAM_ADMIN = "telegram_admin"
    CHAT_ENROLL = "chat_enroll"
