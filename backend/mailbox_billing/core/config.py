from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "mailbox-billing"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_ENV: str = "development"  # "development", "staging" or "production"
    APP_URL: str = "http://localhost:3000"
    APP_DATABASE_DSN: str = "sqlite:////tmp/mailbox_billing.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Shared secret for the scheduler / operator trigger endpoints
    BILLING_CRON_SECRET: str = ""

    # Billing pipeline
    BILLING_CURRENCY: str = "GBP"
    PERIOD_END_TOLERANCE_MINUTES: int = Field(default=15, ge=0, le=60)  # scheduler jitter
    INVOICE_NUMBER_PREFIX: str = "VAH"
    DEFAULT_MONTHLY_PRICE_PENCE: int = 999
    DEFAULT_ANNUAL_PRICE_PENCE: int = 8999

    # Invoice documents
    INVOICES_DIR: str = "/tmp/invoices"
    COMPANY_NAME: str = "VirtualAddressHub Ltd"

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "support@virtualaddresshub.co.uk"
    SMTP_FROM_NAME: str = "VirtualAddressHub"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"


settings = Settings()
