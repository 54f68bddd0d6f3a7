from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"

    database_url: str = "sqlite:///./trip_ledger.db"

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    receipt_ai_enabled: bool = True
    receipt_ai_timeout_seconds: float = 30.0
    receipt_ai_max_chars: int = 20000

    import_amount_tolerance: Decimal = Decimal("0.10")
    import_max_receipts: int = 50

    default_payer: str = "Áron"


settings = Settings()
