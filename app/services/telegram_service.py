import logging
from typing import Optional, Union

import requests

from app.config import settings

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


def send_telegram_message(
    chat_id: Union[str, int],
    text: str,
    parse_mode: str = "HTML",
    bot_token: Optional[str] = None,
) -> bool:
    """
    Send a text message through the Telegram Bot API.

    Returns False (and logs) when the bot is not configured or Telegram
    refuses the message; network errors are raised to the caller.
    """
    token = bot_token or settings.TELEGRAM_BOT_TOKEN

    if not token:
        logger.warning("Telegram bot token not configured, message not sent")
        return False

    if not chat_id:
        logger.warning("No Telegram chat id, message not sent")
        return False

    response = requests.post(
        TELEGRAM_API_URL.format(token=token),
        json={
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
        },
        timeout=10,
    )

    if response.status_code >= 400:
        logger.error(
            f"Telegram send failed ({response.status_code}): {response.text}"
        )
        return False

    data = response.json()
    if not data.get("ok"):
        logger.error(f"Telegram send failed: {data.get('description')}")
        return False

    logger.info(f"Telegram message sent to {chat_id}")
    return True
