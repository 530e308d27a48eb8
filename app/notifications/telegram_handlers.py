from app.config import settings
from app.services.telegram_service import send_telegram_message
from app.utils.template import render_template


def send_user_telegram(template, user, **ctx):
    if not user.telegram_id:
        return False

    text = render_template(template, lang=user.language or "uz", **ctx)
    return send_telegram_message(user.telegram_id, text)


def send_admin_telegram(template, **ctx):
    if not settings.ADMIN_TELEGRAM_ID:
        return False

    text = render_template(template, **ctx)
    return send_telegram_message(settings.ADMIN_TELEGRAM_ID, text)
