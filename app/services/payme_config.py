import base64
import logging
from dataclasses import dataclass

from sqlmodel import Session, select

from app.config import Settings
from app.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

MOCK_MERCHANT_ID = "mock_merchant_id"
MOCK_SECRET_KEY = "mock_secret_key"

# Admin-editable keys override the environment
PAYME_SETTING_KEYS = ("PAYME_MERCHANT_ID", "PAYME_SECRET_KEY")


@dataclass(frozen=True)
class PaymeConfig:
    login: str
    merchant_id: str
    secret_key: str
    checkout_url: str

    @property
    def is_mock(self) -> bool:
        return self.merchant_id == MOCK_MERCHANT_ID


def warn_if_mock_credentials(settings: Settings) -> bool:
    """Startup check: the mock secret is public, so only local runs may use it."""
    if settings.ENV == "local" or settings.PAYME_SECRET_KEY != MOCK_SECRET_KEY:
        return False

    logger.warning(
        f"PAYME_SECRET_KEY is the mock key in ENV={settings.ENV}; "
        f"the Payme webhook accepts publicly known credentials until it is set"
    )
    return True


def load_payme_config(session: Session, settings: Settings) -> PaymeConfig:
    values = {
        "PAYME_MERCHANT_ID": settings.PAYME_MERCHANT_ID,
        "PAYME_SECRET_KEY": settings.PAYME_SECRET_KEY,
    }

    rows = session.exec(
        select(SystemSetting).where(SystemSetting.key.in_(PAYME_SETTING_KEYS))
    ).all()

    for row in rows:
        if row.value:
            values[row.key] = row.value

    return PaymeConfig(
        login=settings.PAYME_LOGIN,
        merchant_id=values["PAYME_MERCHANT_ID"],
        secret_key=values["PAYME_SECRET_KEY"],
        checkout_url=settings.PAYME_CHECKOUT_URL.rstrip("/"),
    )


def generate_payme_url(
    config: PaymeConfig,
    amount_tiyin: int,
    account: dict,
    *,
    lang: str = "uz",
    app_url: str = "",
) -> str:
    """
    Build the hosted checkout link:
    <checkout_url>/base64("m=<merchant>;ac.<key>=<value>;a=<amount>;c=<lang>")
    """
    if config.is_mock:
        return f"{app_url}/tma/payment-success?amount={amount_tiyin / 100:g}"

    account_part = ";".join(f"ac.{key}={value}" for key, value in account.items())
    params = f"m={config.merchant_id};{account_part};a={amount_tiyin};c={lang}"
    encoded = base64.b64encode(params.encode("utf-8")).decode("ascii")

    return f"{config.checkout_url}/{encoded}"


def to_tiyin(amount: float) -> int:
    return int(round(amount * 100))
