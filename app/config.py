from typing import Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "courses"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # Full URL wins over the postgres_* parts (used by tests and one-off scripts)
    DATABASE_URL: Optional[str] = None

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "http://localhost:3000"

    # Payme merchant API
    PAYME_LOGIN: str = "Paycom"
    PAYME_MERCHANT_ID: str = "mock_merchant_id"
    PAYME_SECRET_KEY: str = "mock_secret_key"
    PAYME_CHECKOUT_URL: str = "https://checkout.paycom.uz"

    TELEGRAM_BOT_TOKEN: Optional[str] = None
    ADMIN_TELEGRAM_ID: Optional[str] = None

    CRON_SECRET: Optional[str] = None

    DEFAULT_DURATION_DAYS: int = 30
    EXPIRY_REMINDER_DAYS: int = 3

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
